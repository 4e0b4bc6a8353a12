# tagstream/__init__.py
"""
TagStream 库 - 增量解析模型输出中的标签协议，并在标签闭合时更新工作文件集。
"""

from .core.models import (
    StreamState, StreamMode, FileStatus, Annotation, AnnotationType, Plan, DEFAULT_NAMESPACE,
)
from .core.tokenizer import (
    create_initial_state, process_chunk, finalize, parse_stream, detect_runtime, valid_namespace,
)

__all__ = [
    'StreamState', 'StreamMode', 'FileStatus', 'Annotation', 'AnnotationType', 'Plan',
    'DEFAULT_NAMESPACE', 'create_initial_state', 'process_chunk', 'finalize',
    'parse_stream', 'detect_runtime', 'valid_namespace',
]
