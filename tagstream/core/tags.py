# tagstream/core/tags.py
"""
协议标签的封闭变体类型。

Every recognised tag name maps to exactly one variant carrying its own
fields. Missing or malformed attributes leave the field at ``None`` (or a
default) so the tokenizer can treat the tag as a no-op instead of passing
undefined values along.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, ClassVar, Dict, Optional, Pattern, Union

from .models import AnnotationType, StreamMode

ATTRIBUTE_PATTERN = re.compile(r"""([a-zA-Z0-9_-]+)=(?:"([^"]*)"|'([^']*)')""")
_LEADING_INT = re.compile(r"\s*(-?\d+)")


@lru_cache(maxsize=16)
def open_tag_pattern(namespace: str) -> Pattern:
    """``<ns-name attrs>`` or ``<ns-name attrs />``; attribute text cannot contain '>'."""
    return re.compile(rf"<{re.escape(namespace)}-([a-z]+)\s*([^>]*?)(/?)>")


def close_tag(namespace: str, mode: StreamMode) -> str:
    return f"</{namespace}-{mode.value.lower()}>"


def parse_attributes(text: str) -> Dict[str, str]:
    attrs = {}
    for match in ATTRIBUTE_PATTERN.finditer(text):
        value = match.group(2) if match.group(2) is not None else match.group(3)
        attrs[match.group(1)] = value
    return attrs


def _to_int(value: Optional[str], default: int) -> int:
    match = _LEADING_INT.match(value or "")
    return int(match.group(1)) if match else default


@dataclass(frozen=True)
class DependencyTag:
    name: Optional[str]
    version: Optional[str]
    runtime: str = "node"

    @property
    def complete(self) -> bool:
        return bool(self.name and self.version)


@dataclass(frozen=True)
class AnnotationTag:
    file: Optional[str]
    line: int
    type: AnnotationType
    message: Optional[str]
    suggestion: Optional[str] = None

    @property
    def complete(self) -> bool:
        return bool(self.file and self.message)


@dataclass(frozen=True)
class PlanTag:
    current_step: int
    total_steps: int
    task: str


@dataclass(frozen=True)
class ReasoningTag:
    mode: ClassVar[StreamMode] = StreamMode.REASONING


@dataclass(frozen=True)
class SummaryTag:
    mode: ClassVar[StreamMode] = StreamMode.SUMMARY


@dataclass(frozen=True)
class FileTag:
    name: Optional[str]
    mode: ClassVar[StreamMode] = StreamMode.FILE


@dataclass(frozen=True)
class PatchTag:
    name: Optional[str]
    mode: ClassVar[StreamMode] = StreamMode.PATCH


@dataclass(frozen=True)
class CommandTag:
    type: str = "shell"
    mode: ClassVar[StreamMode] = StreamMode.COMMAND


@dataclass(frozen=True)
class UnknownTag:
    tag_name: str


Tag = Union[
    DependencyTag, AnnotationTag, PlanTag, ReasoningTag, SummaryTag,
    FileTag, PatchTag, CommandTag, UnknownTag,
]

CaptureTag = (ReasoningTag, SummaryTag, FileTag, PatchTag, CommandTag)


def _dependency(attrs: Dict[str, str]) -> DependencyTag:
    runtime = attrs.get("runtime", "node").strip().lower()
    return DependencyTag(
        name=attrs.get("name") or None,
        version=attrs.get("version") or None,
        runtime=runtime if runtime in ("node", "python") else "node",
    )


def _annotation(attrs: Dict[str, str]) -> AnnotationTag:
    try:
        kind = AnnotationType(attrs.get("type", "info").strip().lower())
    except ValueError:
        kind = AnnotationType.INFO
    return AnnotationTag(
        file=attrs.get("file") or None,
        line=_to_int(attrs.get("line"), 1) or 1,
        type=kind,
        message=attrs.get("message") or None,
        suggestion=attrs.get("suggestion") or None,
    )


def _plan(attrs: Dict[str, str]) -> PlanTag:
    current, _, total = attrs.get("step", "0/0").partition("/")
    return PlanTag(
        current_step=_to_int(current, 0),
        total_steps=_to_int(total, 0),
        task=attrs.get("task") or "Processing...",
    )


_BUILDERS: Dict[str, Callable[[Dict[str, str]], Tag]] = {
    "dependency": _dependency,
    "annotation": _annotation,
    "plan": _plan,
    "reasoning": lambda attrs: ReasoningTag(),
    "summary": lambda attrs: SummaryTag(),
    "file": lambda attrs: FileTag(name=attrs.get("name") or None),
    "patch": lambda attrs: PatchTag(name=attrs.get("name") or None),
    "command": lambda attrs: CommandTag(type=attrs.get("type") or "shell"),
}


def parse_tag(tag_name: str, attr_text: str) -> Tag:
    builder = _BUILDERS.get(tag_name)
    if builder is None:
        return UnknownTag(tag_name=tag_name)
    return builder(parse_attributes(attr_text))
