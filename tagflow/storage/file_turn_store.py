# tagflow/storage/file_turn_store.py
"""
TagFlow 核心实现 - 文件回合存储 (FileTurnStore)
提供基于文件系统的回合历史存储实现。

目录结构:
    <base_dir>/projects/<project_id>/current.json      当前已提交的文件集
    <base_dir>/projects/<project_id>/turns/<id>.json   每个回合的反向差异
    <base_dir>/projects/<project_id>/turns.ndjson      回合索引（按提交顺序追加）
    <base_dir>/.locks/<project_id>.lock
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.models import File, Turn
from ..utils.checksum import file_set_checksum
from .file_lock import FileLock
from .state import ITurnStore, StorageError

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def _write_json_atomic(path: Path, data: Any) -> None:
    temp_file = path.with_suffix(path.suffix + ".tmp")
    temp_file.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    temp_file.replace(path)


class FileTurnStore(ITurnStore):
    def __init__(self, base_dir: str = ".tagcoder/store", lock_timeout: Optional[float] = 10.0):
        self.base_dir = Path(base_dir).resolve()
        self.lock_timeout = lock_timeout
        self.projects_dir = self.base_dir / "projects"
        self.locks_dir = self.base_dir / ".locks"
        for dir_path in [self.projects_dir, self.locks_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

    def _project_dir(self, project_id: str) -> Path:
        if not _SAFE_ID.match(project_id or ""):
            raise ValueError(f"Invalid project id: {project_id!r}")
        return self.projects_dir / project_id

    def _lock(self, project_id: str) -> FileLock:
        return FileLock(str(self.locks_dir / f"{project_id}.lock"), timeout=self.lock_timeout)

    def _read_json(self, path: Path) -> Any:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def save_turn(self, project_id: str, turn: Turn) -> None:
        project_dir = self._project_dir(project_id)
        with self._lock(project_id):
            self._save_turn_unlocked(project_dir, turn)

    def _save_turn_unlocked(self, project_dir: Path, turn: Turn) -> None:
        if not _SAFE_ID.match(turn.turn_id or ""):
            raise ValueError(f"Invalid turn id: {turn.turn_id!r}")
        turns_dir = project_dir / "turns"
        turns_dir.mkdir(parents=True, exist_ok=True)
        _write_json_atomic(turns_dir / f"{turn.turn_id}.json", turn.to_dict())

        index_file = project_dir / "turns.ndjson"
        known = {entry["turn_id"] for entry in self._read_index(project_dir)}
        if turn.turn_id not in known:
            with open(index_file, "a", encoding="utf-8") as f:
                f.write(json.dumps({"turn_id": turn.turn_id, "created_at": turn.created_at}) + "\n")

    def _read_index(self, project_dir: Path) -> List[Dict[str, Any]]:
        index_file = project_dir / "turns.ndjson"
        entries = []
        if not index_file.exists():
            return entries
        with open(index_file, encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("Skipping corrupt index line %d in %s", line_no, index_file)
        return entries

    def list_turn_records(self, project_id: str) -> List[Dict[str, Any]]:
        project_dir = self._project_dir(project_id)
        records = []
        with self._lock(project_id):
            for entry in self._read_index(project_dir):
                turn_id = entry.get("turn_id")
                turn_file = project_dir / "turns" / f"{turn_id}.json"
                try:
                    record = self._read_json(turn_file)
                except StorageError as e:
                    # 保留占位记录，历史重建会将其标记为失败并继续
                    logger.warning("Turn %s is unreadable: %s", turn_id, e)
                    record = {"turn_id": turn_id, "error": str(e)}
                records.append(record)
        records.reverse()
        return records

    def list_turns(self, project_id: str) -> List[Turn]:
        turns = []
        for record in self.list_turn_records(project_id):
            try:
                turns.append(Turn.from_dict(record))
            except (KeyError, TypeError) as e:
                raise StorageError(f"Corrupt turn record {record.get('turn_id')}: {e}") from e
        return turns

    def get_current_files(self, project_id: str) -> List[File]:
        current_file = self._project_dir(project_id) / "current.json"
        with self._lock(project_id):
            if not current_file.exists():
                return []
            data = self._read_json(current_file)
        return [File.from_dict(f) for f in data.get("files", [])]

    def save_current_files(self, project_id: str, files: List[File]) -> None:
        project_dir = self._project_dir(project_id)
        with self._lock(project_id):
            self._save_current_unlocked(project_dir, files)

    def _save_current_unlocked(self, project_dir: Path, files: List[File]) -> None:
        project_dir.mkdir(parents=True, exist_ok=True)
        _write_json_atomic(project_dir / "current.json", {
            "checksum": file_set_checksum(files),
            "files": [f.to_dict() for f in files],
        })

    def commit(self, project_id: str, turn: Turn, files: List[File]) -> None:
        # 回合与文件集在同一把锁内写入，避免读者看到只写了一半的提交
        project_dir = self._project_dir(project_id)
        with self._lock(project_id):
            self._save_turn_unlocked(project_dir, turn)
            self._save_current_unlocked(project_dir, files)

    def list_projects(self) -> List[str]:
        return sorted(p.name for p in self.projects_dir.iterdir() if p.is_dir())
