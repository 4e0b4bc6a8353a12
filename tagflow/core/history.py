# tagflow/core/history.py
"""
历史重建器

Walks stored reverse diffs, newest first, from the current committed file set
to recover the state around every turn. A turn whose diff cannot be applied is
recorded with its error and the walk carries on from the last good state.
"""

import logging
from typing import Any, Iterable, List, Tuple, Union

from .models import File, HistoryEntry, SnapshotDiff, Turn
from .snapshot import apply_reverse_snapshot_diff

logger = logging.getLogger(__name__)

TurnLike = Union[Turn, Tuple[str, Any], dict]


def _coerce_turn(item: TurnLike) -> Tuple[str, SnapshotDiff, dict]:
    if isinstance(item, Turn):
        return item.turn_id, item.diff, item.meta
    if isinstance(item, dict):
        if "diff" not in item:
            raise ValueError(item.get("error") or "turn record has no diff")
        turn = Turn.from_dict(item)
        return turn.turn_id, turn.diff, turn.meta
    turn_id, diff = item
    if not isinstance(diff, SnapshotDiff):
        diff = SnapshotDiff.from_dict(diff)
    return str(turn_id), diff, {}


def reconstruct_history(current_files: Iterable[File], turns: Iterable[TurnLike]) -> List[HistoryEntry]:
    """
    Rebuild per-turn file sets.

    Args:
        current_files: the committed file set after the newest turn.
        turns: turns ordered newest first.

    Returns:
        One ``HistoryEntry`` per turn, in the same newest-first order.
    """
    state = list(current_files)
    entries: List[HistoryEntry] = []
    for position, item in enumerate(turns):
        turn_id = item.get("turn_id", f"#{position}") if isinstance(item, dict) else f"#{position}"
        try:
            turn_id, diff, meta = _coerce_turn(item)
            before = apply_reverse_snapshot_diff(state, diff)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Snapshot reconstruction failed for turn %s: %s", turn_id, e)
            entries.append(HistoryEntry(turn_id=turn_id, files_after=state, files_before=state, error=str(e)))
            continue
        entries.append(HistoryEntry(turn_id=turn_id, files_after=state, files_before=before, meta=meta))
        state = before
    return entries


def state_before(current_files: Iterable[File], turns: Iterable[TurnLike], k: int) -> List[File]:
    """File set immediately before the k-th newest turn (k starts at 1)."""
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")
    entries = reconstruct_history(current_files, list(turns)[:k])
    if len(entries) < k:
        raise IndexError(f"only {len(entries)} turns recorded, cannot go back {k}")
    return entries[k - 1].files_before
