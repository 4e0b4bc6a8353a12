# tagflow/core/models.py
"""
TagFlow 核心数据模型
定义了在补丁应用、快照差异计算和历史重建中使用的核心数据结构。
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Tuple, Iterable

from ..utils.id_generator import generate_timestamp
from ..utils.language import language_for


@dataclass(frozen=True)
class File:
    """A single file of a project file set, keyed by ``name``."""
    name: str
    content: str
    language: str = ""

    def __post_init__(self):
        if not self.language:
            object.__setattr__(self, "language", language_for(self.name))

    def with_content(self, content: str) -> "File":
        return File(name=self.name, content=content, language=self.language)

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "content": self.content, "language": self.language}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "File":
        return cls(
            name=data["name"],
            content=data.get("content", ""),
            language=data.get("language") or "",
        )


def files_by_name(files: Iterable[File]) -> Dict[str, File]:
    """Index a file set by name; later duplicates win."""
    return {f.name: f for f in files}


@dataclass(frozen=True)
class SnapshotDiff:
    """
    Undo instructions between two file sets.

    Applying the diff to the NEW set yields the OLD set:
    ``modified`` maps a name to diff text turning new content into old content,
    ``deleted`` lists names to drop (created by the turn),
    ``added`` holds files to restore (removed by the turn).
    """
    modified: Dict[str, str] = field(default_factory=dict)
    deleted: Tuple[str, ...] = ()
    added: Tuple[File, ...] = ()

    def __post_init__(self):
        # 冻结内部容器，防止存储后被后续回合修改
        object.__setattr__(self, "modified", dict(self.modified))
        object.__setattr__(self, "deleted", tuple(self.deleted))
        object.__setattr__(self, "added", tuple(self.added))

    def is_empty(self) -> bool:
        return not (self.modified or self.deleted or self.added)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modified": dict(self.modified),
            "deleted": list(self.deleted),
            "added": [f.to_dict() for f in self.added],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SnapshotDiff":
        if not isinstance(data, dict):
            raise TypeError(f"SnapshotDiff data must be a dict, got {type(data).__name__}")
        modified = data.get("modified") or {}
        if not isinstance(modified, dict):
            raise TypeError("SnapshotDiff 'modified' must be a mapping")
        return cls(
            modified={str(k): str(v) for k, v in modified.items()},
            deleted=tuple(str(n) for n in data.get("deleted") or ()),
            added=tuple(File.from_dict(f) for f in data.get("added") or ()),
        )


@dataclass(frozen=True)
class Turn:
    """One committed generation exchange and its reverse diff."""
    turn_id: str
    diff: SnapshotDiff
    created_at: float = field(default_factory=generate_timestamp)
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "turn_id": self.turn_id,
            "diff": self.diff.to_dict(),
            "created_at": self.created_at,
            "meta": dict(self.meta),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Turn":
        return cls(
            turn_id=data["turn_id"],
            diff=SnapshotDiff.from_dict(data["diff"]),
            created_at=data.get("created_at", 0.0),
            meta=dict(data.get("meta") or {}),
        )


@dataclass
class HistoryEntry:
    """对外暴露的单个回合历史：回合之后与之前的文件集"""
    turn_id: str
    files_after: List[File]
    files_before: List[File]
    error: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None
