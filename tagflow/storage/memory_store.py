# tagflow/storage/memory_store.py
"""进程内回合存储，用于测试和嵌入式调用"""

import threading
from typing import Dict, List

from ..core.models import File, Turn
from .state import ITurnStore


class MemoryTurnStore(ITurnStore):
    def __init__(self):
        self._turns: Dict[str, List[Turn]] = {}
        self._files: Dict[str, List[File]] = {}
        self._lock = threading.Lock()

    def save_turn(self, project_id: str, turn: Turn) -> None:
        with self._lock:
            self._turns.setdefault(project_id, []).append(turn)

    def list_turns(self, project_id: str) -> List[Turn]:
        with self._lock:
            return list(reversed(self._turns.get(project_id, [])))

    def get_current_files(self, project_id: str) -> List[File]:
        with self._lock:
            return list(self._files.get(project_id, []))

    def save_current_files(self, project_id: str, files: List[File]) -> None:
        with self._lock:
            self._files[project_id] = list(files)

    def list_projects(self) -> List[str]:
        with self._lock:
            return sorted(set(self._turns) | set(self._files))
