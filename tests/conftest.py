"""
Pytest configuration and shared fixtures for jsonwriter tests.

Provides immutable writer scenarios and small record types used across
the suite.
"""

from collections.abc import Callable
from dataclasses import dataclass
from io import StringIO
from typing import Any

import pytest

import jsonwriter

# A scenario drives a fresh writer through a sequence of commands
Scenario = Callable[[jsonwriter.JSONWriter], Any]


@dataclass(frozen=True)
class WriterTestCase:
    """
    Immutable container for a writer command sequence and its output.

    The expected output is what the sink holds after close_all().
    """

    description: str
    commands: Scenario
    expected_output: str


@dataclass
class Record:
    """Compound value with capitalised field names and an absent field."""

    Name: str
    Number: int
    Data: Any = None


class Point:
    """Compound value exposing its fields explicitly."""

    def __init__(self, x: int, y: int, label: str | None = None) -> None:
        self.x = x
        self.y = y
        self.label = label

    def __json_fields__(self) -> list[tuple[str, Any]]:
        return [("X", self.x), ("Y", self.y), ("Label", self.label)]


class FailingSink:
    """Sink that accepts a fixed number of fragments and then fails."""

    def __init__(self, accepted: int) -> None:
        self.accepted = accepted
        self.fragments: list[str] = []

    def write(self, s: str) -> int:
        if len(self.fragments) >= self.accepted:
            raise OSError("broken pipe")
        self.fragments.append(s)
        return len(s)


@pytest.fixture
def sink() -> StringIO:
    return StringIO()


@pytest.fixture
def writer(sink: StringIO) -> jsonwriter.JSONWriter:
    return jsonwriter.JSONWriter(sink)


def _person(w: jsonwriter.JSONWriter) -> None:
    w.open_object()
    w.write_property("firstname", "Diether")
    w.write_property("lastname", "Boffel")
    w.write_property("age", 35)
    w.write_key("contact")
    w.open_object()
    w.write_property("email", "d.boffel@fims.it")
    w.close_object()
    w.close_object()


@pytest.fixture
def valid_sequences() -> list[WriterTestCase]:
    """
    Provides command sequences that must produce valid JSON.

    Covers separators between siblings, nesting through keys, dangling keys
    and containers left open for close_all().
    """
    return [
        WriterTestCase(
            "nested person object",
            _person,
            '{"firstname":"Diether","lastname":"Boffel","age":35,'
            '"contact":{"email":"d.boffel@fims.it"}}',
        ),
        WriterTestCase(
            "dangling key inside array",
            lambda w: w.open_array().open_object().write_key("key"),
            '[{"key":null}]',
        ),
        WriterTestCase(
            "empty array",
            lambda w: w.open_array().close_array(),
            "[]",
        ),
        WriterTestCase(
            "empty object",
            lambda w: w.open_object(),
            "{}",
        ),
        WriterTestCase(
            "sibling containers in array",
            lambda w: w.open_array()
            .open_array()
            .close_array()
            .open_object()
            .close_object()
            .write_item(1),
            "[[],{},1]",
        ),
        WriterTestCase(
            "array value under key followed by key",
            lambda w: w.open_object()
            .write_key("a")
            .open_array()
            .write_item(1)
            .write_item(2)
            .close_array()
            .write_property("b", None)
            .write_property("c", True),
            '{"a":[1,2],"c":true}',
        ),
        WriterTestCase(
            "nulls are separated like any item",
            lambda w: w.open_array().write_item(None).write_item(None),
            "[null,null]",
        ),
        WriterTestCase(
            "deeply nested open structures",
            lambda w: w.open_object()
            .write_key("a")
            .open_object()
            .write_key("b")
            .open_array()
            .open_array(),
            '{"a":{"b":[[]]}}',
        ),
        WriterTestCase(
            "top level scalar",
            lambda w: w.write_item("only"),
            '"only"',
        ),
    ]
