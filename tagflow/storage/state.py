# tagflow/storage/state.py
"""
TagFlow 核心接口 - 回合存储 (ITurnStore)
定义了项目回合历史与当前文件集持久化所需的标准接口。
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..core.models import File, Turn


class StorageError(RuntimeError):
    """A stored record exists but cannot be read back."""


class ITurnStore(ABC):
    """
    抽象基类，用于定义回合存储的接口。
    所有具体的存储实现（如基于文件、内存等）都应继承此类。
    """

    @abstractmethod
    def save_turn(self, project_id: str, turn: Turn) -> None:
        """ 追加一个已完成回合的反向差异。 """
        pass

    @abstractmethod
    def list_turns(self, project_id: str) -> List[Turn]:
        """ 按从新到旧的顺序列出项目的所有回合。 """
        pass

    def list_turn_records(self, project_id: str) -> List[Dict[str, Any]]:
        """
        按从新到旧的顺序列出原始回合记录（字典）。
        历史重建使用原始记录，损坏的记录由重建器记录并跳过。
        """
        return [turn.to_dict() for turn in self.list_turns(project_id)]

    @abstractmethod
    def get_current_files(self, project_id: str) -> List[File]:
        """ 获取项目当前已提交的文件集；未知项目返回空列表。 """
        pass

    @abstractmethod
    def save_current_files(self, project_id: str, files: List[File]) -> None:
        pass

    @abstractmethod
    def list_projects(self) -> List[str]:
        """获取所有已知的 project_id 列表。"""
        pass

    def commit(self, project_id: str, turn: Turn, files: List[File]) -> None:
        """Record a turn together with the file set it produced."""
        self.save_turn(project_id, turn)
        self.save_current_files(project_id, files)
