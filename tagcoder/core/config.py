# tagcoder/core/config.py
"""
配置加载

Reads ``.tagcoder/config.yaml`` (or the file named by ``TAGCODER_CONFIG``),
merges it over the defaults and validates the result.
"""

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tagstream.core.tokenizer import valid_namespace

STATE_DIR = Path(".tagcoder")
CONFIG_FILE = STATE_DIR / "config.yaml"
CONFIG_ENV = "TAGCODER_CONFIG"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULTS: Dict[str, Any] = {
    "project_id": "default",
    "protocol": {
        "namespace": "ns",
        "install_commands": True,
    },
    "stream": {
        "chunk_size": 64,
    },
    "storage": {
        "dir": str(STATE_DIR / "store"),
    },
    "logging": {
        "level": "WARNING",
    },
}


class ConfigError(ValueError):
    pass


@dataclass
class Config:
    project_id: str
    namespace: str
    install_commands: bool
    chunk_size: int
    storage_dir: str
    log_level: str
    source: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "protocol": {"namespace": self.namespace, "install_commands": self.install_commands},
            "stream": {"chunk_size": self.chunk_size},
            "storage": {"dir": self.storage_dir},
            "logging": {"level": self.log_level},
        }


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name)
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return section


def from_dict(data: Dict[str, Any], source: Optional[Path] = None) -> Config:
    data = _deep_merge(DEFAULTS, data or {})
    protocol = _section(data, "protocol")
    stream = _section(data, "stream")
    storage = _section(data, "storage")
    logging_section = _section(data, "logging")

    chunk_size = stream.get("chunk_size")
    if not isinstance(chunk_size, int) or isinstance(chunk_size, bool) or chunk_size < 1:
        raise ConfigError(f"stream.chunk_size must be a positive integer, got {chunk_size!r}")
    install_commands = protocol.get("install_commands")
    if not isinstance(install_commands, bool):
        raise ConfigError(f"protocol.install_commands must be true or false, got {install_commands!r}")
    namespace = str(protocol.get("namespace") or "ns")
    if not valid_namespace(namespace):
        raise ConfigError(
            f"protocol.namespace must start with a lowercase letter followed by a-z, 0-9 or _, got {namespace!r}"
        )
    level = str(logging_section.get("level", "WARNING")).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {level!r}")

    return Config(
        project_id=str(data.get("project_id") or DEFAULTS["project_id"]),
        namespace=namespace,
        install_commands=install_commands,
        chunk_size=chunk_size,
        storage_dir=str(storage.get("dir") or DEFAULTS["storage"]["dir"]),
        log_level=level,
        source=source,
    )


def load_config(path: Optional[Path] = None) -> Config:
    """加载配置文件；文件不存在时返回默认配置"""
    if path is None:
        path = Path(os.environ.get(CONFIG_ENV) or CONFIG_FILE)
    path = Path(path)
    if not path.exists():
        return from_dict({})
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at top level")
    return from_dict(data, source=path)
