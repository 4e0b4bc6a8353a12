# tagstream/core/models.py
"""TagStream 核心数据模型"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from tagflow.core.models import File

DEFAULT_NAMESPACE = "ns"


class StreamMode(Enum):
    TEXT = "TEXT"
    REASONING = "REASONING"
    SUMMARY = "SUMMARY"
    FILE = "FILE"
    PATCH = "PATCH"
    COMMAND = "COMMAND"


class FileStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class AnnotationType(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Annotation:
    file: str
    line: int
    type: AnnotationType
    message: str
    suggestion: Optional[str] = None


@dataclass(frozen=True)
class Plan:
    current_step: int
    total_steps: int
    task: str


@dataclass(frozen=True)
class StreamState:
    """
    单个生成回合的解析状态。

    Never mutated in place: ``process_chunk`` and ``finalize`` return a new
    value, so independent streams only share what their caller gives them.
    ``working_files`` changes only when a file or patch tag closes.
    """
    buffer: str = ""
    mode: StreamMode = StreamMode.TEXT
    current_file_name: str = ""
    current_command_type: Optional[str] = None
    reasoning_text: str = ""
    summary_text: str = ""
    file_statuses: Dict[str, FileStatus] = field(default_factory=dict)
    working_files: Tuple[File, ...] = ()
    commands: Tuple[str, ...] = ()
    dependencies: Dict[str, str] = field(default_factory=dict)
    dependency_runtimes: Dict[str, str] = field(default_factory=dict)
    annotations: Tuple[Annotation, ...] = ()
    plan: Optional[Plan] = None
    namespace: str = DEFAULT_NAMESPACE
    install_commands: bool = True

    def get_file(self, name: str) -> Optional[File]:
        for f in self.working_files:
            if f.name == name:
                return f
        return None

    @property
    def is_capturing(self) -> bool:
        return self.mode is not StreamMode.TEXT
