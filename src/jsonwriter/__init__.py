"""
Incremental, write-only JSON encoding.

Emits JSON text through discrete structural commands (open, key, item,
close) without building a document tree. Every call is validated against the
current nesting state so the output is always a prefix of a valid document,
and illegal command sequences fail before anything is written.
"""

import decimal
import logging
import math
from collections import UserString
from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from io import StringIO
from typing import IO
from typing import Any
from typing import Final
from typing import Protocol

from . import _profiling
from ._escape import escape_string
from ._fields import JSONFields
from ._fields import iter_fields
from ._fields import lower_initial
from ._profiling import HotPathStats

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

DefaultHook = Callable[[Any], Any] | None

# Depth reported once the root value is complete
CLOSED_DEPTH: Final = -1


def get_hot_path_stats() -> dict[str, HotPathStats]:
    """Returns profiling statistics; empty unless JSONWRITER_PROFILE is set."""
    return _profiling.get_hot_path_stats()


def clear_hot_path_stats() -> None:
    _profiling.clear_hot_path_stats()


class StructuralState(Enum):
    """
    Position of the writer inside the document being emitted.

    NONE means nothing is open; the other members are the frames kept on the
    nesting stack.
    """

    NONE = "none"
    OBJECT = "object"
    ARRAY = "array"
    KEY = "key"


class Role(Enum):
    """Structural role requested by a writer command."""

    ITEM = "item"
    OBJECT = "object"
    ARRAY = "array"
    KEY = "key"


# Roles accepted in each state. Opening a container is writing an item, so
# containers go wherever items go; keys only go directly inside an object.
_COMPATIBILITY: Final[dict[StructuralState, frozenset[Role]]] = {
    StructuralState.NONE: frozenset({Role.ITEM, Role.OBJECT, Role.ARRAY}),
    StructuralState.OBJECT: frozenset({Role.KEY}),
    StructuralState.ARRAY: frozenset({Role.ITEM, Role.OBJECT, Role.ARRAY}),
    StructuralState.KEY: frozenset({Role.ITEM, Role.OBJECT, Role.ARRAY}),
}

# Frames pushed by each role; plain items push nothing
_FRAMES: Final[dict[Role, StructuralState]] = {
    Role.OBJECT: StructuralState.OBJECT,
    Role.ARRAY: StructuralState.ARRAY,
    Role.KEY: StructuralState.KEY,
}


def is_transition_allowed(state: StructuralState, role: Role) -> bool:
    """Checks a (state, role) pair against the compatibility table."""
    return role in _COMPATIBILITY[state]


class JSONWriterError(ValueError):
    """
    Signals a command sequence that cannot produce valid JSON.

    These are programming errors in the caller. The rejected call emits no
    output, so catching the error leaves the writer usable.
    """


class StructuralViolation(JSONWriterError):
    """
    Raised when a command is illegal in the current structural state.

    Carries the attempted role (None for close commands) and the state it
    was attempted against.
    """

    def __init__(
        self,
        msg: str,
        role: Role | None = None,
        state: StructuralState = StructuralState.NONE,
    ) -> None:
        self.role = role
        self.state = state
        super().__init__(msg)


class DepthExceeded(JSONWriterError):
    """Raised when nesting would exceed the configured maximum depth."""

    def __init__(self, max_depth: int) -> None:
        self.max_depth = max_depth
        super().__init__(
            f"JSON structures cannot be nested deeper than {max_depth} levels"
        )


class ClosedWriterMisuse(JSONWriterError):
    """Raised on any write after the root value has been completed."""

    def __init__(self) -> None:
        super().__init__("JSON structure already closed")


class UnsupportedShape(TypeError):
    """Raised when a value has no automatic JSON representation."""

    def __init__(self, value: Any) -> None:
        self.value_type = type(value)
        super().__init__(
            f"Object of type {self.value_type.__name__} "
            "is not JSON serializable"
        )


class SinkFailure(OSError):
    """Raised when the output sink rejects a fragment."""


class TextSink(Protocol):
    """Append-only destination for JSON text fragments."""

    def write(self, s: str, /) -> Any: ...


@dataclass(frozen=True)
class WriterConfig:
    """
    Configures JSON writer behavior with immutable settings.

    max_depth bounds the nesting stack, counting pending keys as a level.
    float_precision is the number of fixed-point digits written for floats.
    default converts values with no built-in representation; without it,
    skip_unsupported writes null in their place instead of raising.
    """

    max_depth: int = 31
    ensure_ascii: bool = False
    float_precision: int = 6
    skip_unsupported: bool = False
    default: DefaultHook = None

    def __post_init__(self) -> None:
        if not isinstance(self.max_depth, int) or isinstance(
            self.max_depth, bool
        ):
            raise TypeError("max_depth must be an integer")
        if self.max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        if not isinstance(self.ensure_ascii, bool):
            raise TypeError("ensure_ascii must be a boolean")
        if not isinstance(self.float_precision, int) or isinstance(
            self.float_precision, bool
        ):
            raise TypeError("float_precision must be an integer")
        if self.float_precision < 0:
            raise ValueError("float_precision must not be negative")
        if not isinstance(self.skip_unsupported, bool):
            raise TypeError("skip_unsupported must be a boolean")
        if self.default is not None and not callable(self.default):
            raise TypeError("default must be callable")


class _StateStack:
    """
    Bounded stack of open structural frames.

    A KEY frame always sits on top of the object that owns it and is removed
    together with whatever value discharged it. Once the stack empties after
    having held a frame, or a top-level scalar is written, the stack is
    closed for good.
    """

    def __init__(self, max_depth: int) -> None:
        self._frames: list[StructuralState] = []
        self._max_depth = max_depth
        self._closed = False

    @property
    def depth(self) -> int:
        return CLOSED_DEPTH if self._closed else len(self._frames)

    @property
    def closed(self) -> bool:
        return self._closed

    def current(self) -> StructuralState:
        return self._frames[-1] if self._frames else StructuralState.NONE

    def push(self, frame: StructuralState) -> None:
        if self._closed:
            raise ClosedWriterMisuse()
        if len(self._frames) >= self._max_depth:
            raise DepthExceeded(self._max_depth)
        self._frames.append(frame)

    def pop(self) -> StructuralState:
        """Removes the top frame, auto-closing a key it was the value of."""
        frame = self._frames.pop()
        if self._frames and self._frames[-1] is StructuralState.KEY:
            self._frames.pop()
        if not self._frames:
            self._closed = True
        return frame

    def finish(self) -> None:
        self._closed = True


def _encode_float(value: float, precision: int) -> str:
    """Encode float as fixed-point decimal text."""
    if math.isnan(value) or math.isinf(value):
        msg = "Out of range float values are not JSON compliant"
        raise ValueError(msg)
    return f"{value:.{precision}f}"


def _encode_decimal(value: decimal.Decimal) -> str:
    if not value.is_finite():
        msg = "Out of range decimal values are not JSON compliant"
        raise ValueError(msg)
    return format(value, "f")


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(
        value, str | UserString | bytes | bytearray
    )


@dataclass(frozen=True)
class _Node:
    """
    An item checked and rendered ahead of emission.

    Exactly one of literal, fields or items is set. Fields already have
    their output names and no None values.
    """

    literal: str | None = None
    fields: list[tuple[str, "_Node"]] | None = None
    items: list["_Node"] | None = None


class JSONWriter:
    """
    Streams one JSON document to a text sink, one command at a time.

    Commands are checked against the compatibility table before any output,
    separators are inserted lazily before the next sibling, and close_all()
    brings any partial document to a valid end. Structural commands return
    the writer so calls can be chained.

    Not thread-safe; the sink is neither flushed nor closed by the writer.
    """

    def __init__(
        self,
        sink: TextSink | IO[str],
        config: WriterConfig | None = None,
        **kwargs: Any,
    ) -> None:
        if not hasattr(sink, "write"):
            raise TypeError("sink must have a write() method")
        if config is None:
            config = WriterConfig(**kwargs)
        elif kwargs:
            raise TypeError("pass either a WriterConfig or keyword options")

        self.sink = sink
        self.config = config
        self._stack = _StateStack(config.max_depth)
        self._pending_separator = False

    def __enter__(self) -> "JSONWriter":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is None:
            self.close_all()

    @property
    def state(self) -> StructuralState:
        """Current structural state; NONE when nothing is open."""
        return self._stack.current()

    @property
    def depth(self) -> int:
        """Number of open frames, or CLOSED_DEPTH once the document is done."""
        return self._stack.depth

    @property
    def closed(self) -> bool:
        return self._stack.closed

    def _write(self, fragment: str) -> None:
        try:
            self.sink.write(fragment)
        except (OSError, ValueError) as e:
            raise SinkFailure(f"Sink rejected JSON output: {e}") from e

    def _escape(self, s: str) -> str:
        with _profiling.ProfileContext("escape_string", len(s)):
            return escape_string(s, self.config.ensure_ascii)

    def _begin(self, role: Role) -> None:
        """Validates a transition, pushes its frame, flushes the separator."""
        if self._stack.closed:
            raise ClosedWriterMisuse()

        state = self._stack.current()
        if not is_transition_allowed(state, role):
            raise StructuralViolation(
                f"Writing {role.value} is not valid when current state is "
                f"{state.value}",
                role,
                state,
            )

        frame = _FRAMES.get(role)
        if frame is not None:
            self._stack.push(frame)

        if self._pending_separator:
            self._pending_separator = False
            self._write(",")

    def _end(self, frame: StructuralState, closer: str) -> "JSONWriter":
        if self._stack.closed:
            raise ClosedWriterMisuse()

        state = self._stack.current()
        if state is not frame:
            raise StructuralViolation(
                f"Closing {frame.value} is not valid when current state is "
                f"{state.value}",
                None,
                state,
            )

        self._stack.pop()
        self._write(closer)
        self._pending_separator = True
        return self

    def _end_item(self) -> None:
        self._pending_separator = True
        if self._stack.current() is StructuralState.KEY:
            self._stack.pop()
        elif self._stack.depth == 0:
            self._stack.finish()

    def _render_scalar(self, value: Any) -> str | None:  # noqa: PLR0911
        """Renders a scalar as JSON text, or returns None for other shapes."""
        if value is None:
            return "null"
        elif isinstance(value, bool):
            return "true" if value else "false"
        elif isinstance(value, str | UserString):
            return self._escape(str(value))
        elif isinstance(value, int):
            return int.__repr__(value)
        elif isinstance(value, float):
            return _encode_float(value, self.config.float_precision)
        elif isinstance(value, decimal.Decimal):
            return _encode_decimal(value)
        return None

    def open_object(self) -> "JSONWriter":
        self._begin(Role.OBJECT)
        self._write("{")
        return self

    def close_object(self) -> "JSONWriter":
        return self._end(StructuralState.OBJECT, "}")

    def open_array(self) -> "JSONWriter":
        self._begin(Role.ARRAY)
        self._write("[")
        return self

    def close_array(self) -> "JSONWriter":
        return self._end(StructuralState.ARRAY, "]")

    def write_key(self, name: str) -> "JSONWriter":
        """
        Writes an object key; exactly one item must follow.

        The key frame is discharged by the next write_item(), open_object()
        or open_array() once that value is complete.
        """
        if not isinstance(name, str):
            msg = f"keys must be strings, not {type(name).__name__}"
            raise TypeError(msg)

        self._begin(Role.KEY)
        self._write(self._escape(name) + ":")
        return self

    def write_item(self, value: Any) -> "JSONWriter":
        """
        Writes any supported value as the next item.

        Scalars are written as literals, compound values (JSONFields
        implementers and dataclass instances) as objects with None fields
        omitted, and other sequences as arrays. Values of any other type go
        through config.default, are replaced with null under
        config.skip_unsupported, or raise UnsupportedShape.

        The whole value is resolved before anything is written, so a value
        that cannot be encoded leaves the output and the state untouched.
        """
        with _profiling.ProfileContext("write_item"):
            self._emit(self._resolve(value))
        return self

    def write_property(self, name: str, value: Any) -> "JSONWriter":
        """Writes a key and its value; nothing at all when value is None."""
        if value is None:
            return self
        node = self._resolve(value)
        self.write_key(name)
        self._emit(node)
        return self

    def _resolve(self, value: Any) -> _Node:
        literal = self._render_scalar(value)
        if literal is not None:
            return _Node(literal=literal)

        fields = iter_fields(value)
        if fields is not None:
            return _Node(
                fields=[
                    (lower_initial(name), self._resolve(field_value))
                    for name, field_value in fields
                    if field_value is not None
                ]
            )

        if _is_sequence(value):
            return _Node(items=[self._resolve(element) for element in value])

        if self.config.default is not None:
            logger.debug(
                "Converting %s with default hook", type(value).__name__
            )
            return self._resolve(self.config.default(value))

        if self.config.skip_unsupported:
            logger.warning(
                "Writing null in place of unsupported %s value",
                type(value).__name__,
            )
            return _Node(literal="null")

        raise UnsupportedShape(value)

    def _emit(self, node: _Node) -> None:
        if node.literal is not None:
            self._begin(Role.ITEM)
            self._write(node.literal)
            self._end_item()
        elif node.fields is not None:
            self.open_object()
            for name, child in node.fields:
                self.write_key(name)
                self._emit(child)
            self.close_object()
        else:
            self.open_array()
            for child in node.items or []:
                self._emit(child)
            self.close_array()

    def close_all(self) -> "JSONWriter":
        """
        Closes every open structure, innermost first.

        A key still waiting for its value is given null. Calling this on an
        empty or already closed writer does nothing.
        """
        if self._stack.depth > 0:
            logger.debug("Closing %d open JSON frame(s)", self._stack.depth)

        while self._stack.depth > 0:
            state = self._stack.current()
            if state is StructuralState.OBJECT:
                self.close_object()
            elif state is StructuralState.ARRAY:
                self.close_array()
            else:
                self.write_item(None)
        return self


def dumps(obj: Any, **kwargs: Any) -> str:
    """
    Serializes a value to a JSON string through a JSONWriter.

    Keyword arguments are WriterConfig options.
    """
    buffer = StringIO()
    JSONWriter(buffer, **kwargs).write_item(obj)
    return buffer.getvalue()


def dump(obj: Any, fp: IO[str], **kwargs: Any) -> None:
    """
    Streams a value as JSON into a file-like object.
    """
    if not hasattr(fp, "write"):
        raise TypeError("fp must have a write() method")

    JSONWriter(fp, **kwargs).write_item(obj)


__all__ = [
    "CLOSED_DEPTH",
    "ClosedWriterMisuse",
    "DepthExceeded",
    "HotPathStats",
    "JSONFields",
    "JSONWriter",
    "JSONWriterError",
    "Role",
    "SinkFailure",
    "StructuralState",
    "StructuralViolation",
    "TextSink",
    "UnsupportedShape",
    "WriterConfig",
    "clear_hot_path_stats",
    "dump",
    "dumps",
    "escape_string",
    "get_hot_path_stats",
    "is_transition_allowed",
    "lower_initial",
]
