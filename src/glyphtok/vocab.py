"""
Bidirectional token string <-> id store.
"""

from collections.abc import Iterator
import logging

from .codec import CODEC, ByteGlyphCodec
from .errors import UnknownIdError, UnknownTokenError, VocabularyError
from .types import Token, TokenStr

log = logging.getLogger(__name__)


class Vocabulary:
    """
    Append-only mapping between token strings and integer ids.

    The forward and reverse tables are updated together on every insert, so
    both directions are always total for every id handed out. Ids and token
    strings are never reassigned; after :meth:`freeze` no further inserts are
    accepted.
    """

    def __init__(self) -> None:
        self._tok_to_id: dict[TokenStr, Token] = {}
        self._id_to_tok: dict[Token, TokenStr] = {}
        self._frozen = False

    @classmethod
    def with_byte_glyphs(cls, codec: ByteGlyphCodec = CODEC) -> "Vocabulary":
        """Create a vocabulary seeded with the 256 byte glyphs at ids 0-255."""
        vocab = cls()
        for b, glyph in enumerate(codec.glyphs):
            vocab.add(glyph, b)
        return vocab

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "Vocabulary":
        """Reject any further inserts."""
        self._frozen = True
        return self

    def next_id(self) -> Token:
        """Return the id the next auto-assigned insert would receive."""
        return max(self._id_to_tok, default=-1) + 1

    def add(self, token: TokenStr, token_id: Token | None = None) -> Token:
        """
        Insert ``token`` and return its id.

        :param token: Token string to insert.
        :param token_id: Explicit id; defaults to one past the highest id.
        :raises VocabularyError: If the vocabulary is frozen, or the token or
            the id is already present.
        """
        if self._frozen:
            raise VocabularyError("vocabulary is frozen", invalid_tok=token)
        if token in self._tok_to_id:
            raise VocabularyError("token already in vocabulary", invalid_tok=token)
        if token_id is None:
            token_id = self.next_id()
        elif token_id < 0:
            raise VocabularyError("token ids must be >= 0", invalid_tok=token_id)
        if token_id in self._id_to_tok:
            raise VocabularyError("token id already assigned", invalid_tok=token_id)

        self._tok_to_id[token] = token_id
        self._id_to_tok[token_id] = token
        return token_id

    def id_of(self, token: TokenStr) -> Token:
        """
        Return the id of ``token``.

        :raises UnknownTokenError: If the token is not in the vocabulary.
        """
        try:
            return self._tok_to_id[token]
        except KeyError:
            raise UnknownTokenError("token not in vocabulary", token=token) from None

    def token_of(self, token_id: Token) -> TokenStr:
        """
        Return the token string for ``token_id``.

        :raises UnknownIdError: If the id is not in the vocabulary.
        """
        try:
            return self._id_to_tok[token_id]
        except KeyError:
            raise UnknownIdError("token id not in vocabulary", token_id=token_id) from None

    def get_id(self, token: TokenStr) -> Token | None:
        return self._tok_to_id.get(token)

    def get_token(self, token_id: Token) -> TokenStr | None:
        return self._id_to_tok.get(token_id)

    def items(self) -> Iterator[tuple[TokenStr, Token]]:
        """Yield ``(token, id)`` pairs in ascending id order."""
        for token_id in sorted(self._id_to_tok):
            yield self._id_to_tok[token_id], token_id

    def to_dict(self) -> dict[TokenStr, Token]:
        """Return a plain token -> id dict ordered by id."""
        return dict(self.items())

    def __contains__(self, token: object) -> bool:
        return token in self._tok_to_id

    def __len__(self) -> int:
        return len(self._tok_to_id)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(size={len(self)}, frozen={self._frozen})"


__all__ = ["Vocabulary"]
