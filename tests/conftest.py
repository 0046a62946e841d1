"""Shared fixtures for glyphtok tests."""

import pytest

import glyphtok as gtok


CORPUS = (
    "The quick brown fox jumps over the lazy dog. "
    "She sells sea shells by the sea shore, and the shells she sells are surely seashells. "
    "I'm sure they're fine, but we'll see what you've done with the 1234 tokens!\n"
    "Peter Piper picked a peck of pickled peppers; how many pickled peppers did he pick?\n"
)


@pytest.fixture(autouse=True)
def _no_progress_bars():
    """Keep tqdm quiet in test output."""
    gtok.disable_progress()
    yield
    gtok.enable_progress()


@pytest.fixture
def byte_tokenizer():
    """Return a tokenizer with no merges (one id per UTF-8 byte)."""
    return gtok.Tokenizer.byte_level()


@pytest.fixture(scope="session")
def trained_tokenizer():
    """Return a tokenizer trained on a small repeated corpus."""
    return gtok.Tokenizer.train(CORPUS * 20, vocab_size=256 + 60, show_progress=False)
