# tagflow/core/snapshot.py
"""
反向差异快照引擎

Computes undo instructions from a NEW file set back to the OLD one, and
applies them. Only the reverse diffs are stored per turn; full file sets are
never snapshotted.
"""

import logging
from typing import Dict, Iterable, List

from .models import File, SnapshotDiff, files_by_name
from .patch import apply_diff, apply_patch, create_full_patch, create_patch

logger = logging.getLogger(__name__)


def _reverse_patch(name: str, new_content: str, old_content: str) -> str:
    patch_text = create_patch(name, new_content, old_content)
    if apply_patch(new_content, patch_text, quiet=True).content == old_content:
        return patch_text
    # short context matched an earlier repeat of the same lines
    logger.debug("Context diff for %s is ambiguous, storing whole-file hunk", name)
    return create_full_patch(name, new_content, old_content)


def calculate_reverse_diff(old_files: Iterable[File], new_files: Iterable[File]) -> SnapshotDiff:
    """
    Build the diff that transforms ``new_files`` back into ``old_files``.

    Files only in OLD go to ``added``, files only in NEW go to ``deleted``,
    files in both with different content get a NEW→OLD patch in ``modified``.
    """
    old_files = list(old_files)
    new_files = list(new_files)
    new_map = files_by_name(new_files)
    old_names = {f.name for f in old_files}

    modified: Dict[str, str] = {}
    added: List[File] = []
    deleted: List[str] = []

    for old in old_files:
        current = new_map.get(old.name)
        if current is None:
            added.append(old)
        elif current.content != old.content:
            modified[old.name] = _reverse_patch(old.name, current.content, old.content)

    for new in new_files:
        if new.name not in old_names:
            deleted.append(new.name)

    return SnapshotDiff(modified=modified, deleted=tuple(deleted), added=tuple(added))


def apply_reverse_snapshot_diff(current_files: Iterable[File], diff: SnapshotDiff) -> List[File]:
    """Reconstruct the previous file set; neither argument is modified."""
    deleted = set(diff.deleted)
    result = [f for f in current_files if f.name not in deleted]

    existing = {f.name for f in result}
    for restored in diff.added:
        if restored.name in existing:
            logger.warning("Reverse diff restores %s but it already exists, keeping current", restored.name)
            continue
        result.append(restored)
        existing.add(restored.name)

    if diff.modified:
        result = [
            f.with_content(apply_diff(f.content, diff.modified[f.name])) if f.name in diff.modified else f
            for f in result
        ]
    return result
