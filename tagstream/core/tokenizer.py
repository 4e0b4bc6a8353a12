# tagstream/core/tokenizer.py
"""
流式协议解析器

``process_chunk`` appends a fragment to the state's buffer and keeps
consuming tags until no further progress is possible. In TEXT mode the
earliest open tag wins; in a capture mode the literal close tag is awaited,
so tag bodies may span any number of chunks. Feeding a text whole or in
arbitrary fragments yields the same final state.
"""

import logging
import re
from dataclasses import replace
from typing import Iterable, Optional

from tagflow.core.models import File
from tagflow.core.patch import apply_diff

from .models import (
    DEFAULT_NAMESPACE, Annotation, FileStatus, Plan, StreamMode, StreamState,
)
from .tags import (
    AnnotationTag, CaptureTag, CommandTag, DependencyTag, FileTag, PatchTag,
    PlanTag, Tag, UnknownTag, close_tag, open_tag_pattern, parse_tag,
)

logger = logging.getLogger(__name__)

_NAMESPACE = re.compile(r"^[a-z][a-z0-9_]*$")


def valid_namespace(namespace: str) -> bool:
    return bool(_NAMESPACE.match(namespace or ""))


def create_initial_state(
    files: Iterable[File] = (),
    namespace: str = DEFAULT_NAMESPACE,
    install_commands: bool = True,
) -> StreamState:
    """Fresh state for one generation turn, seeded with the project's files."""
    if not valid_namespace(namespace):
        raise ValueError(f"Invalid tag namespace: {namespace!r}")
    seeded = {}
    for f in files:
        seeded[f.name] = f
    return StreamState(
        working_files=tuple(seeded.values()),
        namespace=namespace,
        install_commands=install_commands,
    )


def _check_state(state: StreamState) -> None:
    if not isinstance(state, StreamState):
        raise TypeError(f"state must be a StreamState, got {type(state).__name__}")


def detect_runtime(state: StreamState) -> str:
    runtimes = set(state.dependency_runtimes.values())
    if "python" in runtimes:
        return "python"
    if "node" in runtimes:
        return "node"
    if any(f.name.endswith(".py") for f in state.working_files):
        return "python"
    return "node"


def install_command(name: str, version: Optional[str], runtime: str) -> str:
    if runtime == "python":
        return f"pip install {name}=={version}" if version else f"pip install {name}"
    return f"npm install {name}@{version}" if version else f"npm install {name}"


def _add_command(state: StreamState, command: str) -> StreamState:
    if not command or command in state.commands:
        return state
    return replace(state, commands=state.commands + (command,))


def _set_status(state: StreamState, name: str, status: FileStatus) -> StreamState:
    return replace(state, file_statuses={**state.file_statuses, name: status})


def _upsert_file(state: StreamState, name: str, content: str) -> StreamState:
    updated = File(name=name, content=content)
    files = list(state.working_files)
    for index, existing in enumerate(files):
        if existing.name == name:
            files[index] = updated
            break
    else:
        files.append(updated)
    return replace(state, working_files=tuple(files))


def _open_tag(state: StreamState, tag: Tag, self_closing: bool) -> StreamState:
    if isinstance(tag, DependencyTag):
        if not tag.complete:
            logger.debug("Ignoring dependency tag without name/version: %s", tag)
            return state
        state = replace(
            state,
            dependencies={**state.dependencies, tag.name: tag.version},
            dependency_runtimes={**state.dependency_runtimes, tag.name: tag.runtime},
        )
        if state.install_commands:
            state = _add_command(state, install_command(tag.name, tag.version, tag.runtime))
        return state

    if isinstance(tag, AnnotationTag):
        if not tag.complete:
            logger.debug("Ignoring annotation tag without file/message")
            return state
        annotation = Annotation(tag.file, tag.line, tag.type, tag.message, tag.suggestion)
        return replace(state, annotations=state.annotations + (annotation,))

    if isinstance(tag, PlanTag):
        return replace(state, plan=Plan(tag.current_step, tag.total_steps, tag.task))

    if isinstance(tag, UnknownTag):
        logger.debug("Ignoring unknown tag <%s-%s>", state.namespace, tag.tag_name)
        return state

    if isinstance(tag, CaptureTag):
        state = replace(state, mode=tag.mode)
        if isinstance(tag, (FileTag, PatchTag)):
            state = replace(state, current_file_name=tag.name or "")
            if tag.name:
                state = _set_status(state, tag.name, FileStatus.PENDING)
        elif isinstance(tag, CommandTag):
            state = replace(state, current_command_type=tag.type)
        if self_closing:
            state = _close_capture(state, "")
    return state


def _close_capture(state: StreamState, content: str) -> StreamState:
    mode = state.mode
    name = state.current_file_name

    if mode is StreamMode.REASONING:
        state = replace(state, reasoning_text=state.reasoning_text + content)
    elif mode is StreamMode.SUMMARY:
        state = replace(state, summary_text=state.summary_text + content)
    elif mode is StreamMode.FILE:
        if name:
            state = _upsert_file(state, name, content.strip("\r\n"))
            state = _set_status(state, name, FileStatus.SUCCESS)
        else:
            logger.warning("Discarding file tag without a name attribute")
    elif mode is StreamMode.PATCH:
        if not name:
            logger.warning("Discarding patch tag without a name attribute")
        else:
            target = state.get_file(name)
            if target is None:
                logger.warning("Patch target %s is not in the working set", name)
                state = _set_status(state, name, FileStatus.ERROR)
            else:
                state = _upsert_file(state, name, apply_diff(target.content, content))
                state = _set_status(state, name, FileStatus.SUCCESS)
    elif mode is StreamMode.COMMAND:
        command = content.strip()
        if command and state.current_command_type == "package_install":
            command = install_command(command, None, detect_runtime(state))
        state = _add_command(state, command)

    return replace(state, mode=StreamMode.TEXT, current_file_name="", current_command_type=None)


def _consume_open_tag(state: StreamState) -> Optional[StreamState]:
    match = open_tag_pattern(state.namespace).search(state.buffer)
    if match is None:
        return None
    tag = parse_tag(match.group(1), match.group(2))
    state = replace(state, buffer=state.buffer[match.end():])
    return _open_tag(state, tag, self_closing=bool(match.group(3)))


def _consume_close_tag(state: StreamState) -> Optional[StreamState]:
    closing = close_tag(state.namespace, state.mode)
    index = state.buffer.find(closing)
    if index == -1:
        return None
    content = state.buffer[:index]
    state = replace(state, buffer=state.buffer[index + len(closing):])
    return _close_capture(state, content)


def _trim_text_buffer(buffer: str, namespace: str) -> str:
    """Drop free text that can no longer be part of an open tag."""
    prefix = f"<{namespace}-"
    index = buffer.find(prefix)
    if index != -1:
        return buffer[index:]
    for size in range(min(len(prefix) - 1, len(buffer)), 0, -1):
        if buffer.endswith(prefix[:size]):
            return buffer[-size:]
    return ""


def process_chunk(chunk: str, state: StreamState) -> StreamState:
    """Consume one fragment of model output and return the next state."""
    _check_state(state)
    if not isinstance(chunk, str):
        raise TypeError(f"chunk must be str, got {type(chunk).__name__}")

    state = replace(state, buffer=state.buffer + chunk)
    while True:
        if state.mode is StreamMode.TEXT:
            progressed = _consume_open_tag(state)
        else:
            progressed = _consume_close_tag(state)
        if progressed is None:
            break
        state = progressed

    if state.mode is StreamMode.TEXT:
        state = replace(state, buffer=_trim_text_buffer(state.buffer, state.namespace))
    return state


def finalize(state: StreamState) -> StreamState:
    """
    End the stream, e.g. on completion or cancellation.

    Any tag still open is abandoned: its partial content is dropped and a
    pending file/patch is marked as failed.
    """
    _check_state(state)
    if state.mode in (StreamMode.FILE, StreamMode.PATCH) and state.current_file_name:
        logger.info("Stream ended inside <%s-%s> for %s, discarding partial content",
                    state.namespace, state.mode.value.lower(), state.current_file_name)
        if state.file_statuses.get(state.current_file_name) is FileStatus.PENDING:
            state = _set_status(state, state.current_file_name, FileStatus.ERROR)
    elif state.mode is not StreamMode.TEXT:
        logger.info("Stream ended inside <%s-%s>, discarding partial content",
                    state.namespace, state.mode.value.lower())
    return replace(state, buffer="", mode=StreamMode.TEXT, current_file_name="", current_command_type=None)


def parse_stream(
    chunks: Iterable[str],
    files: Iterable[File] = (),
    namespace: str = DEFAULT_NAMESPACE,
    install_commands: bool = True,
) -> StreamState:
    """Fold a whole chunk sequence through ``process_chunk`` and finalize."""
    state = create_initial_state(files, namespace=namespace, install_commands=install_commands)
    for chunk in chunks:
        state = process_chunk(chunk, state)
    return finalize(state)
