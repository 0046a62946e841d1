"""Pre-tokenization: split raw text into chunks that BPE processes independently."""

from collections.abc import Iterator
from enum import Enum
import logging

import regex as re

from .errors import PatternError

log = logging.getLogger(__name__)


class TokenPattern(str, Enum):
    """
    Pre-defined segmentation patterns.

    Sources:
    - GPT2 and GPT4: https://github.com/openai/tiktoken/blob/main/tiktoken_ext/openai_public.py
    - LLAMA3: https://github.com/ggerganov/llama.cpp
    """

    # contractions, letter runs, digit runs and punctuation runs each take an
    # optional single leading space; whitespace before a word is left for it
    GPT2 = (
        r"'(?:[sdmt]|ll|ve|re)|"
        r" ?\p{L}+|"
        r" ?\p{N}+|"
        r" ?[^\s\p{L}\p{N}]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    GPT4 = (
        r"'(?i:[sdmt]|ll|ve|re)|"
        r"[^\r\n\p{L}\p{N}]?+\p{L}+|"
        r"\p{N}{1,3}|"
        r" ?[^\s\p{L}\p{N}]++[\r\n]*|"
        r"\s*[\r\n]|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    LLAMA3 = (
        r"(?:'[sS]|'[tT]|'[rR][eE]|'[vV][eE]|'[mM]|'[lL][lL]|'[dD])|"
        r"[^\r\n\p{L}\p{N}]?\p{L}+|"
        r"\p{N}{1,3}|"
        r" ?[^\s\p{L}\p{N}]+[\r\n]*|"
        r"\s*[\r\n]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    @classmethod
    def get(cls, name: str) -> str:
        """Get patterns by name (case-insensitive)."""
        try:
            return cls[name.upper().replace("-", "_")].value
        except KeyError:
            raise PatternError(
                f"Unknown pattern: {name!r}. "
                f"Valid patterns: {', '.join(pat.name for pat in cls)}"
            ) from None


def list_patterns() -> list[str]:
    """Return names of all available built-in segmentation patterns."""
    return [pat.name.lower() for pat in TokenPattern]


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """
    Compile and validate a regex pattern.

    :param pattern: Regex pattern string to compile.
    :return: Compiled regex pattern.
    :raises PatternError: If pattern is invalid.
    """
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternError("invalid regex pattern", pattern=pattern, regex_err=e) from e


def resolve_pattern(pattern: "TokenPattern | str | None") -> str:
    """Return the regex source for an enum member, a built-in name or a custom pattern."""
    if pattern is None:
        return TokenPattern.GPT2.value
    if isinstance(pattern, TokenPattern):
        return pattern.value
    # built-in names are accepted as a convenience, anything else is a raw regex
    if pattern.upper().replace("-", "_") in TokenPattern.__members__:
        return TokenPattern.get(pattern)
    return pattern


class Segmenter:
    """
    Split text into pre-tokenization chunks.

    Matches are taken greedily left to right. With the default GPT-2 pattern
    every character of the input lands in exactly one chunk, so joining the
    chunks reproduces the input.
    """

    def __init__(self, pattern: TokenPattern | str | None = None) -> None:
        self.pattern: str = resolve_pattern(pattern)
        self.compiled: re.Pattern[str] = compile_pattern(self.pattern)
        log.debug(f"compiled segmentation pattern ({len(self.pattern)} chars)")

    def iter_segments(self, text: str) -> Iterator[str]:
        for m in self.compiled.finditer(text):
            chunk = m.group(0)
            # zero-width matches are possible with custom patterns
            if chunk:
                yield chunk

    def segment(self, text: str) -> list[str]:
        """Return the chunks of ``text`` in order."""
        return list(self.iter_segments(text))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(pattern={self.pattern!r})"


__all__ = [
    "TokenPattern",
    "Segmenter",
    "compile_pattern",
    "resolve_pattern",
    "list_patterns",
]
