"""
Special tokens: reserved literal strings that bypass segmentation and BPE.

Special tokens are located in the raw text before any other processing so
that a literal such as ``<|im_start|>`` always maps to its reserved id and is
never split into sub-word pieces.
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Final, NamedTuple
import logging

import regex as re

from .errors import SpecialTokenError
from .types import Token

log = logging.getLogger(__name__)

ENDOFTEXT: Final[str] = "<|endoftext|>"

# ids must match the reserved range models expect
DEFAULT_SPECIAL_TOKENS: Final[Mapping[str, Token]] = MappingProxyType(
    {
        # chat format tokens
        "<|im_start|>": 100264,
        "<|im_end|>": 100265,
        "<|im_sep|>": 100266,
        # system tokens
        ENDOFTEXT: 100257,
        "<|fim_prefix|>": 100258,
        "<|fim_middle|>": 100259,
        "<|fim_suffix|>": 100260,
        # additional control tokens
        "<|startoftext|>": 100261,
        "<|endofprompt|>": 100262,
        "<|startofsystem|>": 100263,
        "<|endofsystem|>": 100267,
        "<|startofuser|>": 100268,
        "<|endofuser|>": 100269,
        "<|startofassistant|>": 100270,
        "<|endofassistant|>": 100271,
        # function calling
        "<|function_call|>": 100272,
        "<|function_response|>": 100273,
        # tool use
        "<|tool_call|>": 100274,
        "<|tool_response|>": 100275,
        # role markers
        "<|system|>": 100276,
        "<|user|>": 100277,
        "<|assistant|>": 100278,
        # code blocks
        "<|code|>": 100279,
        "<|/code|>": 100280,
        # reasoning
        "<|thought|>": 100281,
        "<|/thought|>": 100282,
    }
)


class Segment(NamedTuple):
    """A span of input text and whether it is a special token literal."""

    text: str
    is_special: bool


def validate_special_tokens(special_toks: Mapping[str, Token]) -> None:
    """
    Check a special token table for empty literals and id clashes.

    :raises SpecialTokenError: If a literal is empty, an id is negative or two
        literals share an id.
    """
    if any(not seq for seq in special_toks):
        raise SpecialTokenError("special token literals must be non-empty")

    negative = {seq for seq, tok in special_toks.items() if tok < 0}
    if negative:
        raise SpecialTokenError("special token ids must be >= 0", found_tokens=negative)

    ids = list(special_toks.values())
    if len(ids) != len(set(ids)):
        duplicates = {seq for seq, tok in special_toks.items() if ids.count(tok) > 1}
        raise SpecialTokenError("duplicate token ids", found_tokens=duplicates)


class SpecialTokenSplitter:
    """Split text on special token literals, keeping the literals as their own segments."""

    def __init__(self, literals: Iterable[str]) -> None:
        # longest first so a literal never loses to one of its own prefixes
        self.literals: tuple[str, ...] = tuple(
            sorted(set(literals), key=lambda seq: (-len(seq), seq))
        )
        self._compiled: re.Pattern[str] | None = None
        if self.literals:
            # escape regex metachars like "|" that every literal contains
            self._compiled = re.compile(
                "|".join(re.escape(seq) for seq in self.literals)
            )
        log.debug(f"built special token splitter over {len(self.literals)} literals")

    def split(self, text: str) -> list[Segment]:
        """
        Return the ordered segments covering ``text``.

        Empty plain segments are never produced, so concatenating the segment
        texts reproduces the input exactly.
        """
        if not text:
            return []
        if self._compiled is None:
            return [Segment(text, False)]

        parts: list[Segment] = []
        last = 0
        for m in self._compiled.finditer(text):
            if m.start() > last:
                parts.append(Segment(text[last : m.start()], False))
            parts.append(Segment(m.group(0), True))
            last = m.end()

        if last < len(text):
            parts.append(Segment(text[last:], False))

        return parts

    def contains_special(self, text: str) -> bool:
        return self._compiled is not None and self._compiled.search(text) is not None

    def strip(self, text: str) -> list[str]:
        """Return the plain spans of ``text`` with every literal removed."""
        return [seg.text for seg in self.split(text) if not seg.is_special]


__all__ = [
    "ENDOFTEXT",
    "DEFAULT_SPECIAL_TOKENS",
    "Segment",
    "SpecialTokenSplitter",
    "validate_special_tokens",
]
