"""Unit tests for special token splitting and strategies."""

import pytest

import glyphtok as gtok
from glyphtok.errors import SpecialTokenError, StrategyError
from glyphtok.special import (
    DEFAULT_SPECIAL_TOKENS,
    Segment,
    SpecialTokenSplitter,
    validate_special_tokens,
)


@pytest.fixture
def splitter():
    return SpecialTokenSplitter(DEFAULT_SPECIAL_TOKENS)


# Default table
# ---------------------------------------------------------------------------


def test_default_ids_match_reserved_range():
    """Documented ids are preserved exactly."""
    assert DEFAULT_SPECIAL_TOKENS["<|endoftext|>"] == 100257
    assert DEFAULT_SPECIAL_TOKENS["<|im_start|>"] == 100264
    assert DEFAULT_SPECIAL_TOKENS["<|im_end|>"] == 100265
    assert DEFAULT_SPECIAL_TOKENS["<|im_sep|>"] == 100266
    assert DEFAULT_SPECIAL_TOKENS["<|/thought|>"] == 100282
    assert sorted(DEFAULT_SPECIAL_TOKENS.values()) == list(range(100257, 100283))


def test_default_table_is_read_only():
    with pytest.raises(TypeError):
        DEFAULT_SPECIAL_TOKENS["<|new|>"] = 1  # type: ignore[index]


# Splitting
# ---------------------------------------------------------------------------


def test_split_chat_markers(splitter):
    """Literals become their own segments, text in between stays plain."""
    parts = splitter.split("<|im_start|>system<|im_sep|>Hello<|im_end|>")
    assert parts == [
        Segment("<|im_start|>", True),
        Segment("system", False),
        Segment("<|im_sep|>", True),
        Segment("Hello", False),
        Segment("<|im_end|>", True),
    ]


def test_split_covers_input(splitter):
    text = "a<|code|>b<|/code|>\n<|thought|>c"
    assert "".join(seg.text for seg in splitter.split(text)) == text


def test_split_no_special(splitter):
    assert splitter.split("plain text") == [Segment("plain text", False)]


def test_split_empty(splitter):
    assert splitter.split("") == []


def test_adjacent_literals_have_no_empty_segments(splitter):
    parts = splitter.split("<|im_end|><|im_start|>")
    assert [seg.text for seg in parts] == ["<|im_end|>", "<|im_start|>"]


def test_longest_literal_wins():
    """A literal never loses to a shorter literal that is its prefix."""
    splitter = SpecialTokenSplitter(["<|x|>", "<|x|>y"])
    assert splitter.split("<|x|>y<|x|>") == [
        Segment("<|x|>y", True),
        Segment("<|x|>", True),
    ]


def test_partial_literal_is_plain(splitter):
    assert splitter.split("<|im_start") == [Segment("<|im_start", False)]


def test_splitter_without_literals():
    assert SpecialTokenSplitter([]).split("x<|im_end|>") == [Segment("x<|im_end|>", False)]


def test_strip_removes_literals(splitter):
    assert splitter.strip("a<|endoftext|>b") == ["a", "b"]


def test_contains_special(splitter):
    assert splitter.contains_special("hi <|user|> there")
    assert not splitter.contains_special("hi <|user there")
    assert not SpecialTokenSplitter([]).contains_special("<|user|>")


# Validation
# ---------------------------------------------------------------------------


def test_duplicate_ids_rejected():
    with pytest.raises(SpecialTokenError):
        validate_special_tokens({"<|a|>": 300, "<|b|>": 300})


def test_empty_literal_rejected():
    with pytest.raises(SpecialTokenError):
        validate_special_tokens({"": 300})


# Strategies
# ---------------------------------------------------------------------------


def test_strategy_names():
    assert gtok.list_strategies() == ["all", "none", "none-raise", "custom"]
    assert isinstance(gtok.get_strategy("all"), gtok.AllowAllStrategy)
    assert isinstance(gtok.get_strategy("none"), gtok.AllowNoneStrategy)


def test_unknown_strategy_raises():
    with pytest.raises(StrategyError):
        gtok.get_strategy("some")  # type: ignore[call-overload]


def test_custom_strategy_requires_subset():
    with pytest.raises(StrategyError):
        gtok.get_strategy("custom")  # type: ignore[call-overload]


def test_none_raise_strategy():
    strategy = gtok.get_strategy("none-raise")
    with pytest.raises(SpecialTokenError):
        strategy.handle("hi <|im_end|>", DEFAULT_SPECIAL_TOKENS)
    assert strategy.handle("hi", DEFAULT_SPECIAL_TOKENS) == {}


def test_custom_strategy_subset():
    strategy = gtok.get_strategy("custom", allowed_subset={"<|im_start|>"})
    assert strategy.handle("", DEFAULT_SPECIAL_TOKENS) == {"<|im_start|>": 100264}
