"""
Utilities for converting glyph tokens to displayable strings.
"""

import unicodedata

from .codec import CODEC, ByteGlyphCodec
from .errors import GlyphError


def _escape_ctrl_chars(s: str) -> str:
    """Replace all Unicode control characters with their escape sequences."""
    cleaned = []
    for c in s:
        # control category codes vary: Cc, Cf, Cn etc.
        # so check via first character
        if unicodedata.category(c)[0] != "C":
            cleaned.append(c)
        else:
            cleaned.append(f"\\u{ord(c):04x}")
    return "".join(cleaned)


def render_bytes(b: bytes) -> str:
    """
    Decode bytes as UTF-8 and escape control characters.

    Invalid UTF-8 sequences (e.g. a token holding half of a multi-byte
    character) are replaced with the Unicode replacement character.
    """
    return _escape_ctrl_chars(b.decode("utf-8", errors="replace"))


def render_token(token: str, codec: ByteGlyphCodec = CODEC) -> str:
    """Render a glyph token as the text it stands for; non-glyph strings pass through."""
    try:
        raw = codec.decode(token)
    except GlyphError:
        return _escape_ctrl_chars(token)
    return render_bytes(raw)
