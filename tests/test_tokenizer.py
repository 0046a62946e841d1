"""Unit tests for Tokenizer encode/decode, edge cases, and training."""

import logging

import pytest

import glyphtok as gtok
from glyphtok import (
    CODEC,
    NullCache,
    Tokenizer,
    TokenizerModel,
    TrainingConfig,
    UnknownTokenPolicy,
)
from glyphtok.errors import (
    SpecialTokenError,
    StrategyError,
    TokenDecodeError,
    UnknownIdError,
    UnknownTokenError,
    VocabularyError,
)

from conftest import CORPUS


@pytest.fixture
def abc_tokenizer():
    """Return a tokenizer whose (B, C) merge outranks (A, B)."""
    return Tokenizer(TokenizerModel.from_merges([("B", "C"), ("A", "B")]))


@pytest.fixture
def no_h_model():
    """Return a model whose vocabulary is missing the 'h' glyph."""
    vocab = {glyph: b for b, glyph in enumerate(CODEC.glyphs) if glyph != "h"}
    return TokenizerModel.from_vocab(vocab, [])


# Byte-level encoding
# ---------------------------------------------------------------------------


def test_byte_level_ids_are_bytes(byte_tokenizer):
    assert byte_tokenizer.encode("Hello, world!") == list(b"Hello, world!")


def test_byte_level_multibyte(byte_tokenizer):
    assert byte_tokenizer.encode("é") == [0xC3, 0xA9]
    assert byte_tokenizer.decode([0xC3, 0xA9]) == "é"


def test_empty_text(byte_tokenizer):
    assert byte_tokenizer.encode("") == []
    assert byte_tokenizer.decode([]) == ""


def test_special_tokens_are_atomic(byte_tokenizer):
    """Chat markers map to their reserved ids, never to sub-word pieces."""
    ids = byte_tokenizer.encode("<|im_start|>system<|im_sep|>Hello<|im_end|>")
    assert ids == [100264, *b"system", 100266, *b"Hello", 100265]


def test_tokenize_returns_glyph_strings(byte_tokenizer):
    assert byte_tokenizer.tokenize("a b") == ["a", "Ġ", "b"]


def test_display_tokens(byte_tokenizer):
    assert byte_tokenizer.display_tokens("a b\n<|endoftext|>") == [
        "a",
        " ",
        "b",
        "\\u000a",
        "<|endoftext|>",
    ]


# Merge priority
# ---------------------------------------------------------------------------


def test_lower_rank_wins(abc_tokenizer):
    assert abc_tokenizer.tokenize("ABC") == ["A", "BC"]
    assert abc_tokenizer.encode("ABC") == [ord("A"), 256]


def test_merges_stay_inside_chunks(abc_tokenizer):
    """Merges never cross pre-tokenization boundaries."""
    assert abc_tokenizer.tokenize("AB C") == ["AB", "Ġ", "C"]


# Special token strategies
# ---------------------------------------------------------------------------


def test_strategy_none_encodes_literal_as_text(byte_tokenizer):
    ids = byte_tokenizer.encode("<|im_end|>", gtok.get_strategy("none"))
    assert ids == list(b"<|im_end|>")


def test_strategy_none_raise(byte_tokenizer):
    with pytest.raises(SpecialTokenError):
        byte_tokenizer.encode("hi<|im_end|>", gtok.get_strategy("none-raise"))


def test_strategy_custom(byte_tokenizer):
    strategy = gtok.get_strategy("custom", allowed_subset={"<|im_start|>"})
    ids = byte_tokenizer.encode("<|im_start|>x<|im_end|>", strategy)
    assert ids == [100264, ord("x"), *b"<|im_end|>"]


# Decoding
# ---------------------------------------------------------------------------


def test_decode_special_inside_text(byte_tokenizer):
    assert byte_tokenizer.decode([104, 100257, 105]) == "h<|endoftext|>i"


def test_decode_partial_character_modes(byte_tokenizer):
    assert byte_tokenizer.decode([195]) == "Ã"
    assert byte_tokenizer.decode([195], errors="replace") == "\ufffd"
    with pytest.raises(TokenDecodeError):
        byte_tokenizer.decode([195], errors="strict")


def test_decode_invalid_errors_value(byte_tokenizer):
    with pytest.raises(ValueError):
        byte_tokenizer.decode([104], errors="ignore")  # type: ignore[arg-type]


def test_unknown_id_skipped(byte_tokenizer, caplog):
    with caplog.at_level(logging.WARNING, logger="glyphtok"):
        assert byte_tokenizer.decode([104, 999999, 105]) == "hi"
    assert "999999" in caplog.text


def test_unknown_id_strict():
    tokenizer = Tokenizer.byte_level(unknown_policy="strict")
    with pytest.raises(UnknownIdError):
        tokenizer.decode([104, 999999])


def test_decode_batch(byte_tokenizer):
    assert byte_tokenizer.decode_batch([[104, 105], [33]]) == ["hi", "!"]


# Unknown tokens
# ---------------------------------------------------------------------------


def test_unknown_token_lenient(no_h_model, caplog):
    tokenizer = Tokenizer(no_h_model)
    with caplog.at_level(logging.WARNING, logger="glyphtok"):
        assert tokenizer.encode("hi") == [100257, 105]
    assert "unknown token" in caplog.text


def test_unknown_token_strict(no_h_model):
    tokenizer = Tokenizer(no_h_model, unknown_policy=UnknownTokenPolicy.STRICT)
    with pytest.raises(UnknownTokenError):
        tokenizer.encode("hi")


def test_policy_lookup():
    assert UnknownTokenPolicy.get("Strict") is UnknownTokenPolicy.STRICT
    with pytest.raises(StrategyError):
        UnknownTokenPolicy.get("relaxed")


# Cache
# ---------------------------------------------------------------------------


def test_cache_does_not_change_output(trained_tokenizer):
    uncached = Tokenizer(trained_tokenizer.model, cache=NullCache())
    assert uncached.encode(CORPUS) == trained_tokenizer.encode(CORPUS)
    assert len(uncached.cache) == 0


def test_cache_fill_and_clear():
    tokenizer = Tokenizer.byte_level()
    tokenizer.encode("hello world")
    assert "hello" in tokenizer.cache
    assert " world" in tokenizer.cache
    tokenizer.clear_cache()
    assert len(tokenizer.cache) == 0
    assert tokenizer.encode("hello") == list(b"hello")


def test_lru_cache_evicts_oldest():
    cache = gtok.BPECache(maxsize=2)
    cache.put("a", ("a",))
    cache.put("b", ("b",))
    cache.get("a")
    cache.put("c", ("c",))
    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache


# Batch encoding
# ---------------------------------------------------------------------------


def test_encode_batch_matches_encode(trained_tokenizer):
    texts = CORPUS.splitlines()
    expected = [trained_tokenizer.encode(text) for text in texts]
    assert trained_tokenizer.encode_batch(texts, num_workers=4) == expected
    assert trained_tokenizer.encode_batch(texts, num_workers=0) == expected


def test_encode_batch_empty(byte_tokenizer):
    assert byte_tokenizer.encode_batch([]) == []


# Trained tokenizer
# ---------------------------------------------------------------------------


def test_trained_roundtrip(trained_tokenizer):
    assert trained_tokenizer.decode(trained_tokenizer.encode(CORPUS)) == CORPUS


def test_trained_compresses(trained_tokenizer):
    assert len(trained_tokenizer.encode(CORPUS)) < len(CORPUS.encode("utf-8"))


def test_trained_vocab_size(trained_tokenizer):
    assert trained_tokenizer.vocab_size() == 256 + 60 + 26
    assert trained_tokenizer.training_result.stop_reason is gtok.StopReason.TARGET_REACHED


def test_trained_chat_roundtrip(trained_tokenizer):
    text = trained_tokenizer.format_chat_messages(
        "You are a helpful assistant 🤖", "naïve café, 日本語?"
    )
    ids = trained_tokenizer.encode(text)
    assert ids[0] == 100264
    assert ids.count(100265) == 2
    assert trained_tokenizer.decode(ids) == text


def test_unseen_unicode_roundtrip(trained_tokenizer):
    text = "Ünïcödé 🎉 ✓ \t\r\n tabs   and spaces"
    assert trained_tokenizer.decode(trained_tokenizer.encode(text)) == text


def test_token_lookup(trained_tokenizer):
    assert trained_tokenizer.token_to_id("<|endoftext|>") == 100257
    assert trained_tokenizer.id_to_token(32) == "Ġ"
    assert trained_tokenizer.is_special_token("<|im_sep|>")
    assert not trained_tokenizer.is_special_token("hello")
    with pytest.raises(UnknownIdError):
        trained_tokenizer.id_to_token(99999)


def test_special_tokens_copy(trained_tokenizer):
    table = trained_tokenizer.special_tokens
    table["<|new|>"] = 1
    assert "<|new|>" not in trained_tokenizer.special_tokens


def test_vocab_size_too_small():
    with pytest.raises(VocabularyError):
        Tokenizer.train(CORPUS, vocab_size=256)


def test_train_from_file(tmp_path):
    corpus = tmp_path / "corpus.txt"
    corpus.write_text(CORPUS * 10, encoding="utf-8")
    out = tmp_path / "model"

    tokenizer = Tokenizer.train_from_file(
        corpus, 256 + 20, output_dir=out, show_progress=False
    )
    assert tokenizer.corpus is None  # streamed, never held in one piece
    assert (out / "merges.txt").is_file()

    reloaded = Tokenizer.from_pretrained(out)
    assert reloaded.encode(CORPUS) == tokenizer.encode(CORPUS)


def test_train_from_file_batched_matches_whole_file(tmp_path):
    """Streaming the corpus in line batches learns the same merges."""
    corpus = tmp_path / "corpus.txt"
    corpus.write_text(CORPUS * 10, encoding="utf-8")

    batched = Tokenizer.train_from_file(
        corpus, 256 + 40, config=TrainingConfig(batch_size=3), show_progress=False
    )
    whole = Tokenizer.train_from_file(
        corpus, 256 + 40, config=TrainingConfig(batch_size=None), show_progress=False
    )
    assert batched.training_result.merges == whole.training_result.merges
    assert batched.encode(CORPUS) == whole.encode(CORPUS)
    assert whole.corpus is not None
    assert not whole.corpus.truncated


def test_byte_cap_reads_prefix_even_with_batches(tmp_path):
    corpus = tmp_path / "corpus.txt"
    corpus.write_text(CORPUS * 10, encoding="utf-8")

    config = TrainingConfig(max_corpus_bytes=200, batch_size=3)
    tokenizer = Tokenizer.train_from_file(
        corpus, 256 + 5, config=config, show_progress=False
    )
    assert tokenizer.corpus is not None
    assert tokenizer.corpus.truncated
    assert tokenizer.corpus.bytes_used == 200


def test_special_ids_split_byte_runs():
    """A special id ends the pending byte run before its literal is emitted."""
    tokenizer = Tokenizer.byte_level(special_tokens={"<|x|>": 300})
    assert tokenizer.decode([104, 300, 105]) == "h<|x|>i"
    assert tokenizer.decode([0xC3, 300, 0xA9]) == "Ã<|x|>©"
