"""Unit tests for saving and loading tokenizer models."""

import json

import pytest

from glyphtok import Tokenizer
from glyphtok.errors import ModelLoadError
from glyphtok.serialization import MERGES_HEADER, load_merges, load_model, save_model

from conftest import CORPUS


@pytest.fixture
def saved_dir(tmp_path, trained_tokenizer):
    return save_model(trained_tokenizer.model, tmp_path / "model")


def test_save_writes_all_files(saved_dir):
    for name in ("vocab.json", "merges.txt", "special_tokens.json", "config.json"):
        assert (saved_dir / name).is_file()
    first = (saved_dir / "merges.txt").read_text(encoding="utf-8").splitlines()[0]
    assert first == MERGES_HEADER


def test_roundtrip(saved_dir, trained_tokenizer):
    model = load_model(saved_dir)
    assert model.merges == trained_tokenizer.model.merges
    assert model.vocab.to_dict() == trained_tokenizer.model.vocab.to_dict()
    assert dict(model.special_tokens) == trained_tokenizer.special_tokens
    assert model.pattern == trained_tokenizer.model.pattern

    reloaded = Tokenizer(model)
    assert reloaded.encode(CORPUS) == trained_tokenizer.encode(CORPUS)


def test_ids_rederived_without_vocab_file(saved_dir, trained_tokenizer):
    (saved_dir / "vocab.json").unlink()
    model = load_model(saved_dir)
    assert model.vocab.to_dict() == trained_tokenizer.model.vocab.to_dict()


def test_merges_without_header(tmp_path):
    path = tmp_path / "merges.txt"
    path.write_text("h e\n\nhe l\n", encoding="utf-8")
    assert load_merges(path) == [("h", "e"), ("he", "l")]


def test_bad_merge_line(tmp_path):
    path = tmp_path / "merges.txt"
    path.write_text(f"{MERGES_HEADER}\nh e\nhel\n", encoding="utf-8")
    with pytest.raises(ModelLoadError, match="line 3"):
        load_merges(path)


def test_invalid_json(saved_dir):
    (saved_dir / "vocab.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ModelLoadError):
        load_model(saved_dir)


def test_duplicate_ids(saved_dir):
    (saved_dir / "vocab.json").write_text(
        json.dumps({"a": 1, "b": 1}), encoding="utf-8"
    )
    with pytest.raises(ModelLoadError):
        load_model(saved_dir)


def test_inconsistent_special_tokens(saved_dir):
    (saved_dir / "special_tokens.json").write_text(
        json.dumps({"<|endoftext|>": 5}), encoding="utf-8"
    )
    with pytest.raises(ModelLoadError):
        load_model(saved_dir)


def test_version_mismatch(saved_dir):
    (saved_dir / "config.json").write_text(
        json.dumps({"version": "99", "pattern": "x"}), encoding="utf-8"
    )
    with pytest.raises(ModelLoadError) as exc_info:
        load_model(saved_dir)
    assert exc_info.value.version_mismatch == ("99", "1")


def test_missing_directory(tmp_path):
    with pytest.raises(ModelLoadError):
        load_model(tmp_path / "nope")


def test_missing_merges(tmp_path):
    (tmp_path / "model").mkdir()
    with pytest.raises(ModelLoadError):
        load_model(tmp_path / "model")
