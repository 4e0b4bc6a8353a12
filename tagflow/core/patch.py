# tagflow/core/patch.py
"""
上下文锚定的模糊补丁应用器。

Hunk headers (``@@ ... @@``) are skipped without reading their line numbers:
generators routinely miscount lines, so every hunk is located by its context
instead. Each hunk is tried as an exact substring replacement first and then
as a whitespace-insensitive line window; a hunk that cannot be located is
skipped and the rest still apply.
"""

import difflib
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

HUNK_HEADER = "@@"

CONTEXT = " "
REMOVED = "-"
ADDED = "+"


@dataclass
class Hunk:
    """A parsed hunk: ordered ``(op, text)`` pairs, op being ' ', '-' or '+'."""
    lines: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def search_block(self) -> List[str]:
        return [text for op, text in self.lines if op != ADDED]

    @property
    def replace_block(self) -> List[str]:
        return [text for op, text in self.lines if op != REMOVED]

    def is_noop(self) -> bool:
        return self.search_block == self.replace_block


@dataclass
class PatchResult:
    content: str
    applied: int = 0
    skipped: int = 0
    strategies: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return self.skipped == 0


def parse_hunks(diff_text: str) -> List[Hunk]:
    """
    Split unified-diff text into hunks.

    Anything before the first ``@@`` line (``---``/``+++`` file headers,
    prose) is ignored. A bare empty line counts as a blank context line,
    except at the end of a hunk where it is dropped. Lines without a
    recognised prefix are taken as context.
    """
    hunks: List[Hunk] = []
    current: Optional[List[Tuple[str, str, bool]]] = None

    def close():
        if current is None:
            return
        while current and current[-1][2]:
            current.pop()
        hunks.append(Hunk([(op, text) for op, text, _ in current]))

    for line in diff_text.split("\n"):
        if line.startswith(HUNK_HEADER):
            close()
            current = []
            continue
        if current is None:
            continue
        if line.startswith("\\"):
            # "\ No newline at end of file"
            continue
        if line == "":
            current.append((CONTEXT, "", True))
        elif line[0] in (CONTEXT, REMOVED, ADDED):
            current.append((line[0], line[1:], False))
        else:
            current.append((CONTEXT, line, False))
    close()
    return hunks


def _exact_replace(document: str, hunk: Hunk) -> Optional[str]:
    search = "\n".join(hunk.search_block)
    if search == "" and hunk.search_block and document != "":
        # A lone blank line anchors nowhere useful; leave it to the line window.
        return None
    if search not in document:
        return None
    return document.replace(search, "\n".join(hunk.replace_block), 1)


def _fuzzy_replace(document: str, hunk: Hunk) -> Optional[str]:
    """Splice the first window whose lines equal the search block after ``strip()``.

    Unlike a plain search/replace, context lines are copied from the document
    rather than from the hunk: ``"  x\\n  y"`` patched with `` x / -y / +z``
    becomes ``"  x\\nz"``. Only removed and added lines change.
    """
    search = [line.strip() for line in hunk.search_block]
    size = len(search)
    if size == 0:
        return None
    doc_lines = document.split("\n")
    for start in range(len(doc_lines) - size + 1):
        window = doc_lines[start:start + size]
        if any(doc.strip() != want for doc, want in zip(window, search)):
            continue
        replacement = []
        cursor = start
        for op, text in hunk.lines:
            if op == CONTEXT:
                # context keeps the document's own indentation
                replacement.append(doc_lines[cursor])
                cursor += 1
            elif op == REMOVED:
                cursor += 1
            else:
                replacement.append(text)
        return "\n".join(doc_lines[:start] + replacement + doc_lines[start + size:])
    return None


def apply_patch(original: str, diff_text: str, quiet: bool = False) -> PatchResult:
    """Apply every hunk of ``diff_text`` to ``original`` and report what happened."""
    result = PatchResult(content=original)
    if not diff_text or not diff_text.strip():
        return result

    for index, hunk in enumerate(parse_hunks(diff_text), start=1):
        if hunk.is_noop():
            result.applied += 1
            result.strategies.append("noop")
            continue

        patched = _exact_replace(result.content, hunk)
        strategy = "exact"
        if patched is None:
            patched = _fuzzy_replace(result.content, hunk)
            strategy = "fuzzy"

        if patched is None:
            result.skipped += 1
            result.strategies.append("skipped")
            if not quiet:
                preview = hunk.search_block[0].strip() if hunk.search_block else ""
                logger.warning("Hunk %d could not be located, skipped (first context line: %r)", index, preview)
            continue

        result.content = patched
        result.applied += 1
        result.strategies.append(strategy)
        logger.debug("Hunk %d applied via %s match", index, strategy)

    return result


def apply_diff(original: str, diff_text: str) -> str:
    """Best-effort patch application; never raises on malformed diff text."""
    return apply_patch(original, diff_text).content


def create_patch(name: str, old: str, new: str, context: int = 3) -> str:
    """Unified diff turning ``old`` into ``new``; empty string when equal."""
    if old == new:
        return ""
    lines = difflib.unified_diff(
        old.split("\n"),
        new.split("\n"),
        fromfile=f"a/{name}",
        tofile=f"b/{name}",
        n=context,
        lineterm="",
    )
    return "\n".join(lines)


def create_full_patch(name: str, old: str, new: str) -> str:
    """Single-hunk diff whose context spans the whole of ``old``."""
    span = max(old.count("\n"), new.count("\n")) + 1
    return create_patch(name, old, new, context=span)


@dataclass
class DiffRow:
    kind: str  # eq | add | del | change
    old_no: Optional[int]
    old_text: str
    new_no: Optional[int]
    new_text: str


def side_by_side(old: str, new: str) -> List[DiffRow]:
    """Align two texts line by line for two-column rendering."""
    old_lines = old.split("\n")
    new_lines = new.split("\n")
    rows: List[DiffRow] = []
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for i, j in zip(range(i1, i2), range(j1, j2)):
                rows.append(DiffRow("eq", i + 1, old_lines[i], j + 1, new_lines[j]))
            continue
        if tag == "replace":
            paired = min(i2 - i1, j2 - j1)
            for k in range(paired):
                rows.append(DiffRow("change", i1 + k + 1, old_lines[i1 + k], j1 + k + 1, new_lines[j1 + k]))
            i1 += paired
            j1 += paired
        for i in range(i1, i2):
            rows.append(DiffRow("del", i + 1, old_lines[i], None, ""))
        for j in range(j1, j2):
            rows.append(DiffRow("add", None, "", j + 1, new_lines[j]))
    return rows
