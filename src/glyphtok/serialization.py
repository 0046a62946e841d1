"""
Reading and writing tokenizer models.

A model directory holds:

- ``vocab.json``: flat ``{token: id}`` object.
- ``merges.txt``: one ``left right`` pair per line in learned order; the line
  order is the rank. An optional first line starting with ``#`` is a header.
- ``special_tokens.json``: flat ``{literal: id}`` object (optional).
- ``config.json``: format version and segmentation pattern (optional).
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final
import json
import logging

from .errors import ModelLoadError, SpecialTokenError, VocabularyError
from .model import FORMAT_VERSION, TokenizerModel
from .types import Token, TokenPair

log = logging.getLogger(__name__)

VOCAB_FILE: Final[str] = "vocab.json"
MERGES_FILE: Final[str] = "merges.txt"
SPECIAL_TOKENS_FILE: Final[str] = "special_tokens.json"
CONFIG_FILE: Final[str] = "config.json"
MERGES_HEADER: Final[str] = "#version: 0.2"


def save_model(model: TokenizerModel, directory: str | Path) -> Path:
    """
    Persist ``model`` into ``directory``, creating it if needed.

    :returns: The directory written to.
    """
    out = Path(directory)
    out.mkdir(parents=True, exist_ok=True)
    log.info(f"saving tokenizer to {out}")

    _write_json(out / VOCAB_FILE, model.vocab.to_dict())

    with (out / MERGES_FILE).open("w", encoding="utf-8", newline="\n") as f:
        f.write(f"{MERGES_HEADER}\n")
        for first, second in model.merges:
            f.write(f"{first} {second}\n")

    _write_json(out / SPECIAL_TOKENS_FILE, dict(model.special_tokens))
    _write_json(out / CONFIG_FILE, {"version": model.version, "pattern": model.pattern})

    log.info(
        f"tokenizer saved: {len(model.vocab)} tokens, {len(model.merges)} merge rules"
    )
    return out


def _write_json(path: Path, obj: Any) -> None:
    with path.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)
        f.write("\n")


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, UnicodeDecodeError) as e:
        raise ModelLoadError("failed to read file", model_path=str(path)) from e
    except json.JSONDecodeError as e:
        raise ModelLoadError(f"invalid JSON: {e.msg} at line {e.lineno}", model_path=str(path)) from e


def _read_token_table(path: Path) -> dict[str, Token]:
    """Read a flat ``{string: int}`` JSON object with unique ids."""
    data = _read_json(path)
    if not isinstance(data, dict):
        raise ModelLoadError("expected a JSON object", model_path=str(path))

    table: dict[str, Token] = {}
    seen: dict[Token, str] = {}
    for token, tok in data.items():
        # bool is an int subclass but never a valid id
        if not isinstance(tok, int) or isinstance(tok, bool) or tok < 0:
            raise ModelLoadError(
                f"token {token!r} has invalid id {tok!r}", model_path=str(path)
            )
        if tok in seen:
            raise ModelLoadError(
                f"id {tok} assigned to both {seen[tok]!r} and {token!r}",
                model_path=str(path),
            )
        seen[tok] = token
        table[token] = tok

    return table


def load_vocab(path: str | Path) -> dict[str, Token]:
    """
    Load a ``vocab.json`` file.

    :raises ModelLoadError: If the file is missing, not a flat JSON object of
        non-negative integer ids, or two tokens share an id.
    """
    p = Path(path)
    if not p.is_file():
        raise ModelLoadError("vocabulary file does not exist", model_path=str(p))
    vocab = _read_token_table(p)
    log.debug(f"loaded {len(vocab)} vocabulary entries")
    return vocab


def load_merges(path: str | Path) -> list[TokenPair]:
    """
    Load a ``merges.txt`` file; line order is merge rank.

    :raises ModelLoadError: If the file is missing or any non-blank line is not
        exactly two whitespace separated symbols.
    """
    p = Path(path)
    if not p.is_file():
        raise ModelLoadError("merges file does not exist", model_path=str(p))

    merges: list[TokenPair] = []
    try:
        with p.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                # optional version/comment header
                if lineno == 1 and line.startswith("#"):
                    continue
                parts = line.split()
                if not parts:
                    continue
                if len(parts) != 2:
                    raise ModelLoadError(
                        f"invalid merge format at line {lineno}: {line.strip()!r}",
                        model_path=str(p),
                    )
                merges.append((parts[0], parts[1]))
    except (OSError, UnicodeDecodeError) as e:
        raise ModelLoadError("failed to read merges file", model_path=str(p)) from e

    log.debug(f"loaded {len(merges)} merge rules")
    return merges


def load_special_tokens(path: str | Path) -> dict[str, Token]:
    return _read_token_table(Path(path))


def load_config(path: str | Path) -> dict[str, str]:
    """
    Load ``config.json`` and check the format version.

    :raises ModelLoadError: On malformed content or a version mismatch.
    """
    p = Path(path)
    data = _read_json(p)
    if not isinstance(data, dict):
        raise ModelLoadError("expected a JSON object", model_path=str(p))

    version = data.get("version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise ModelLoadError(
            "model version mismatch",
            model_path=str(p),
            version_mismatch=(str(version), FORMAT_VERSION),
        )

    pattern = data.get("pattern")
    if pattern is not None and not isinstance(pattern, str):
        raise ModelLoadError("pattern must be a string", model_path=str(p))

    return {"version": version, **({"pattern": pattern} if pattern else {})}


def load_model(
    directory: str | Path,
    pattern: str | None = None,
    special_tokens: Mapping[str, Token] | None = None,
) -> TokenizerModel:
    """
    Load a model directory written by :func:`save_model`.

    ``vocab.json`` is optional: without it ids are re-derived from the merge
    order alone. Every file is parsed before the model is built, so a failure
    never yields a partially initialized model.

    :param directory: Model directory.
    :param pattern: Override the persisted segmentation pattern.
    :param special_tokens: Override the persisted special tokens.
    :raises ModelLoadError: If any file is missing, malformed or inconsistent.
    """
    d = Path(directory)
    if not d.is_dir():
        raise ModelLoadError("model directory does not exist", model_path=str(d))

    log.info(f"loading model from {d}")

    merges = load_merges(d / MERGES_FILE)

    vocab_path = d / VOCAB_FILE
    vocab = load_vocab(vocab_path) if vocab_path.exists() else None

    special_path = d / SPECIAL_TOKENS_FILE
    if special_tokens is None and special_path.exists():
        special_tokens = load_special_tokens(special_path)

    config_path = d / CONFIG_FILE
    config = load_config(config_path) if config_path.exists() else {}
    if pattern is None:
        pattern = config.get("pattern")

    try:
        if vocab is None:
            model = TokenizerModel.from_merges(merges, special_tokens, pattern)
        else:
            model = TokenizerModel.from_vocab(vocab, merges, special_tokens, pattern)
    except (VocabularyError, SpecialTokenError) as e:
        raise ModelLoadError(f"inconsistent model files: {e}", model_path=str(d)) from e

    log.info(
        f"model loaded successfully: {len(model.special_tokens)} special tokens, "
        f"{len(model.merges)} merge rules, {len(model.vocab)} total tokens"
    )
    return model


__all__ = [
    "VOCAB_FILE",
    "MERGES_FILE",
    "SPECIAL_TOKENS_FILE",
    "CONFIG_FILE",
    "save_model",
    "load_model",
    "load_vocab",
    "load_merges",
    "load_special_tokens",
    "load_config",
]
