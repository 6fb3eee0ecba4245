# pylint: disable=missing-module-docstring,missing-function-docstring
import pytest

from controller.wake_phrase import build_transcript, detect_wake_phrase, matched_variant


@pytest.mark.parametrize(
    "text",
    [
        "hey anna",
        "hi anna",
        "ok hey anna what time is it",
        "hello hannah",
        "ana please stop",
        "hiya onna",
    ],
)
def test_wake_phrase_variants_match(text: str):
    assert detect_wake_phrase(text)


@pytest.mark.parametrize(
    "text",
    [
        "completely unrelated sentence",
        "hey there",
        "",
        "   ",
    ],
)
def test_non_matching_text(text: str):
    assert not detect_wake_phrase(text)


def test_exact_phrase_wins_over_fuzzy():
    assert matched_variant("well hey anna") == "hey anna"


def test_name_alone_is_enough():
    assert matched_variant("is that anna") == "anna"


def test_containment_is_substring_based():
    # "ana" inside a longer word still counts
    assert detect_wake_phrase("banana bread")


def test_build_transcript_lowercases_and_joins():
    assert build_transcript(["Hey", "ANNA", "how are you"]) == "hey anna how are you"
    assert build_transcript([]) == ""
