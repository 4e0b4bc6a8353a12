# tagflow/utils/checksum.py
import hashlib
from typing import Iterable, Union

from ..core.models import File


def calculate_checksum(content: Union[str, bytes]) -> str:
    """计算内容的 SHA256 校验和"""
    if isinstance(content, str):
        content = content.encode('utf-8')
    return hashlib.sha256(content).hexdigest()


def file_set_checksum(files: Iterable[File]) -> str:
    """Order-independent checksum of a file set (names and contents)."""
    digest = hashlib.sha256()
    for f in sorted(files, key=lambda f: f.name):
        digest.update(f.name.encode('utf-8'))
        digest.update(b"\0")
        digest.update(calculate_checksum(f.content).encode('ascii'))
        digest.update(b"\n")
    return digest.hexdigest()
