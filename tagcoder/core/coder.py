# tagcoder/core/coder.py
"""
回合执行服务

TurnRunner ties the pieces together for one project: it seeds a stream from
the committed files, feeds model output through the tokenizer, and only after
the stream is finalized computes and stores the reverse diff of the turn.
"""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from tagflow.core.history import reconstruct_history
from tagflow.core.models import File, HistoryEntry, SnapshotDiff, Turn
from tagflow.core.snapshot import calculate_reverse_diff
from tagflow.storage.file_turn_store import FileTurnStore
from tagflow.storage.state import ITurnStore
from tagflow.utils.id_generator import generate_turn_id
from tagstream.core.models import FileStatus, StreamState
from tagstream.core.tokenizer import create_initial_state, finalize, process_chunk

from .config import Config

logger = logging.getLogger(__name__)


def iter_chunks(text: str, size: int) -> Iterator[str]:
    """Split ``text`` into fragments of at most ``size`` characters."""
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(text), size):
        yield text[start:start + size]


@dataclass
class TurnResult:
    state: StreamState
    old_files: List[File]
    files: List[File]
    diff: SnapshotDiff = field(init=False)

    def __post_init__(self):
        self.diff = calculate_reverse_diff(self.old_files, self.files)

    @property
    def failed(self) -> List[str]:
        return [name for name, status in self.state.file_statuses.items() if status is FileStatus.ERROR]

    @property
    def changed(self) -> bool:
        return not self.diff.is_empty()


class TurnRunner:
    def __init__(self, store: ITurnStore, project_id: str, namespace: str = "ns",
                 install_commands: bool = True):
        self.store = store
        self.project_id = project_id
        self.namespace = namespace
        self.install_commands = install_commands

    @classmethod
    def from_config(cls, config: Config, store: Optional[ITurnStore] = None) -> "TurnRunner":
        return cls(
            store=store or FileTurnStore(config.storage_dir),
            project_id=config.project_id,
            namespace=config.namespace,
            install_commands=config.install_commands,
        )

    def current_files(self) -> List[File]:
        return self.store.get_current_files(self.project_id)

    def run(self, chunks: Iterable[str]) -> TurnResult:
        """
        Stream one turn to completion.

        Iteration stopping early (a cancelled stream) is fine: whatever was
        closed so far is kept and open tags are dropped by ``finalize``.
        """
        old_files = self.current_files()
        state = create_initial_state(old_files, namespace=self.namespace,
                                     install_commands=self.install_commands)
        try:
            for chunk in chunks:
                state = process_chunk(chunk, state)
        finally:
            state = finalize(state)
        return TurnResult(state=state, old_files=old_files, files=list(state.working_files))

    def commit(self, result: TurnResult, turn_id: Optional[str] = None) -> Optional[Turn]:
        """Persist the turn's reverse diff and the new file set; no-op turns are not stored."""
        if not result.changed:
            logger.info("Turn left %s unchanged, nothing to commit", self.project_id)
            return None
        state = result.state
        turn = Turn(
            turn_id=turn_id or generate_turn_id(),
            diff=result.diff,
            meta={
                "summary": state.summary_text.strip(),
                "commands": list(state.commands),
                "dependencies": dict(state.dependencies),
                "plan": asdict(state.plan) if state.plan else None,
                "file_statuses": {name: status.value for name, status in state.file_statuses.items()},
            },
        )
        self.store.commit(self.project_id, turn, result.files)
        logger.info("Committed turn %s for %s", turn.turn_id, self.project_id)
        return turn

    def history(self) -> List[HistoryEntry]:
        return reconstruct_history(self.current_files(), self.store.list_turn_records(self.project_id))

    def find_turn(self, turn_id: str) -> HistoryEntry:
        for entry in self.history():
            if entry.turn_id == turn_id:
                return entry
        raise KeyError(turn_id)


def write_workspace(files: Iterable[File], root: Path) -> List[Path]:
    """将文件集写入磁盘；拒绝写到 root 之外的路径"""
    root = Path(root).resolve()
    written = []
    for f in files:
        target = (root / f.name).resolve()
        if root not in target.parents:
            raise ValueError(f"Refusing to write outside {root}: {f.name}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f.content, encoding="utf-8")
        written.append(target)
    return written
