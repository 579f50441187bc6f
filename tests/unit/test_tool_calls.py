# pylint: disable=missing-module-docstring,missing-function-docstring
import pytest

from errors import InvalidArgumentsError
from orchestrator.enums.tool import ToolName
from orchestrator.tool_calls import (
    classify_tool,
    classify_utterance,
    extract_time_of_day,
    has_time,
    is_day_query,
    parse_arguments,
)


# ---------------------------------------------------------------------
# parse_arguments
# ---------------------------------------------------------------------

def test_parse_arguments_accepts_objects_and_empty_buffers() -> None:
    assert parse_arguments('{"date": "2025-01-15"}') == {"date": "2025-01-15"}
    assert parse_arguments("") == {}
    assert parse_arguments("   ") == {}
    assert parse_arguments(None) == {}


@pytest.mark.parametrize("buffer", ['{"start": "2025-01-15T10:00"', "[1, 2]", '"text"', "nope"])
def test_parse_arguments_rejects_non_objects(buffer: str) -> None:
    with pytest.raises(InvalidArgumentsError, match="Invalid tool arguments"):
        parse_arguments(buffer)


# ---------------------------------------------------------------------
# classify_tool
# ---------------------------------------------------------------------

def test_known_name_wins_over_argument_shape() -> None:
    assert classify_tool("getAvailableSlots", {"start": "a", "end": "b"}) is ToolName.GET_AVAILABLE_SLOTS


@pytest.mark.parametrize("name", [None, "", "unknown"])
def test_missing_name_is_inferred_from_arguments(name) -> None:
    window = {"start": "2025-01-15T10:00", "end": "2025-01-15T11:00"}

    assert classify_tool(name, {**window, "customer": {"name": "Jane"}}) is ToolName.BOOK_APPOINTMENT
    assert classify_tool(name, window) is ToolName.CHECK_AVAILABILITY
    assert classify_tool(name, {"date": "2025-01-15"}) is ToolName.GET_AVAILABLE_SLOTS
    assert classify_tool(name, {"start": "2025-01-15T10:00"}) is None


def test_unrecognised_name_is_not_inferred() -> None:
    assert classify_tool("sendEmail", {"date": "2025-01-15"}) is None


# ---------------------------------------------------------------------
# transcript heuristics
# ---------------------------------------------------------------------

def test_utterance_with_time_forces_point_check() -> None:
    assert classify_utterance("Can we do Tuesday at 3pm?") is ToolName.CHECK_AVAILABILITY
    assert classify_utterance("how about noon") is ToolName.CHECK_AVAILABILITY


def test_utterance_with_day_only_forces_slot_listing() -> None:
    assert classify_utterance("What do you have tomorrow?") is ToolName.GET_AVAILABLE_SLOTS
    assert classify_utterance("anything this   week") is ToolName.GET_AVAILABLE_SLOTS


def test_small_talk_forces_nothing() -> None:
    assert classify_utterance("Thanks, that sounds great") is None
    assert not has_time("hello there")
    assert not is_day_query("hello there")


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("3pm works", (15, 0)),
        ("at 3:30 PM", (15, 30)),
        ("10 am please", (10, 0)),
        ("12pm", (12, 0)),
        ("12am", (0, 0)),
        ("14:45", (14, 45)),
        ("around noon", (12, 0)),
        ("midnight", (0, 0)),
        ("at 9", (9, 0)),
    ],
)
def test_extract_time_of_day(text: str, expected: tuple[int, int]) -> None:
    assert extract_time_of_day(text) == expected


def test_extract_time_of_day_rejects_impossible_or_missing_times() -> None:
    assert extract_time_of_day("at 25:00") is None
    assert extract_time_of_day("10:75") is None
    assert extract_time_of_day("sometime tomorrow") is None
