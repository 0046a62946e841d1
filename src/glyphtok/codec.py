"""
Bijective mapping between raw byte values and printable Unicode glyphs.

BPE merges are matched on strings, so every byte of the UTF-8 encoding of a
text chunk is first replaced by a visible stand-in character. Bytes that are
already printable (ASCII ``!``..``~`` and most of Latin-1) stand for
themselves; the remaining 68 bytes (control characters, space, a few Latin-1
gaps) are shifted to code points 256 and up, in ascending byte order.
"""

import functools
import logging
from typing import Final

from .errors import GlyphError

log = logging.getLogger(__name__)

N_BYTES: Final[int] = 256


@functools.lru_cache(maxsize=1)
def bytes_to_unicode() -> dict[int, str]:
    """Return the byte -> glyph table covering all 256 byte values."""
    # printable ranges map to themselves
    bs = (
        list(range(ord("!"), ord("~") + 1))
        + list(range(ord("\xa1"), ord("\xac") + 1))
        + list(range(ord("\xae"), ord("\xff") + 1))
    )
    cs = bs[:]
    n = 0
    # everything else is shifted past the byte range
    for b in range(N_BYTES):
        if b not in bs:
            bs.append(b)
            cs.append(N_BYTES + n)
            n += 1

    return {b: chr(c) for b, c in zip(bs, cs)}


class ByteGlyphCodec:
    """Encode raw bytes as glyph strings and back."""

    def __init__(self) -> None:
        self._byte_to_glyph: tuple[str, ...] = tuple(
            bytes_to_unicode()[b] for b in range(N_BYTES)
        )
        self._glyph_to_byte: dict[str, int] = {
            glyph: b for b, glyph in enumerate(self._byte_to_glyph)
        }

    @property
    def glyphs(self) -> tuple[str, ...]:
        """The 256 glyphs in byte order."""
        return self._byte_to_glyph

    def byte_to_glyph(self, b: int) -> str:
        """Return the glyph standing for byte ``b``."""
        if not 0 <= b < N_BYTES:
            raise ValueError(f"byte value out of range: {b}")
        return self._byte_to_glyph[b]

    def glyph_to_byte(self, glyph: str) -> int:
        """
        Return the byte value a glyph stands for.

        :raises GlyphError: If ``glyph`` is not one of the 256 byte glyphs.
        """
        try:
            return self._glyph_to_byte[glyph]
        except KeyError:
            raise GlyphError("character is not a byte glyph", glyph=glyph) from None

    def encode(self, data: bytes) -> str:
        """Map every byte in ``data`` to its glyph."""
        table = self._byte_to_glyph
        return "".join(table[b] for b in data)

    def decode(self, glyphs: str) -> bytes:
        """
        Map a glyph string back to the raw bytes it represents.

        :raises GlyphError: On the first character that is not a byte glyph.
        """
        return bytes(self.glyph_to_byte(ch) for ch in glyphs)

    def text_to_glyphs(self, text: str) -> str:
        """
        UTF-8 encode ``text`` and return its glyph representation.

        Lone surrogates cannot be encoded; each is replaced by ``?`` and a
        warning is logged.
        """
        try:
            data = text.encode("utf-8")
        except UnicodeEncodeError as e:
            log.warning(
                f"text contains unencodable character {text[e.start]!r} at {e.start}, "
                "replacing with '?'"
            )
            data = text.encode("utf-8", errors="replace")
        return self.encode(data)


# shared immutable instance, the tables never change for the process lifetime
CODEC: Final[ByteGlyphCodec] = ByteGlyphCodec()


__all__ = ["N_BYTES", "bytes_to_unicode", "ByteGlyphCodec", "CODEC"]
