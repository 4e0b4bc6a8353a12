# tagflow/__init__.py
"""
TagFlow 库 - 模糊补丁应用、反向差异快照与历史重建。
"""

from .core.models import File, SnapshotDiff, Turn, HistoryEntry
from .core.patch import apply_diff, apply_patch, create_patch
from .core.snapshot import calculate_reverse_diff, apply_reverse_snapshot_diff
from .core.history import reconstruct_history, state_before
from .storage.state import ITurnStore, StorageError
from .storage.file_turn_store import FileTurnStore
from .storage.memory_store import MemoryTurnStore

__all__ = [
    'File', 'SnapshotDiff', 'Turn', 'HistoryEntry',
    'apply_diff', 'apply_patch', 'create_patch',
    'calculate_reverse_diff', 'apply_reverse_snapshot_diff',
    'reconstruct_history', 'state_before',
    'ITurnStore', 'StorageError', 'FileTurnStore', 'MemoryTurnStore',
]
