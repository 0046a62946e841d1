"""
Immutable tokenizer model: vocabulary, ranked merge table and special tokens.

A model is built once (from training output or persisted files) and shared by
reference; encode/decode only ever read it.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Final
import logging

from .codec import CODEC, N_BYTES
from .errors import VocabularyError
from .pattern import TokenPattern, resolve_pattern
from .special import DEFAULT_SPECIAL_TOKENS, ENDOFTEXT, validate_special_tokens
from .types import Token, TokenPair, TokenStr
from .vocab import Vocabulary

log = logging.getLogger(__name__)

FORMAT_VERSION: Final[str] = "1"


class MergeTable:
    """
    Ordered merge rules; a pair's position is its rank (lower merges first).

    Each pair appears at most once and ranks are the contiguous sequence
    0, 1, 2, ... in learned order.
    """

    def __init__(self, merges: Iterable[TokenPair] = ()) -> None:
        pairs: list[TokenPair] = []
        ranks: dict[TokenPair, int] = {}
        for pair in merges:
            pair = tuple(pair)
            if len(pair) != 2 or not all(pair):
                raise VocabularyError("merge must be two non-empty symbols", invalid_tok=str(pair))
            if pair in ranks:
                raise VocabularyError("duplicate merge pair", invalid_tok=" ".join(pair))
            ranks[pair] = len(pairs)
            pairs.append(pair)

        self._pairs: tuple[TokenPair, ...] = tuple(pairs)
        self._ranks: Mapping[TokenPair, int] = MappingProxyType(ranks)

    @property
    def ranks(self) -> Mapping[TokenPair, int]:
        """Read-only pair -> rank mapping."""
        return self._ranks

    @property
    def pairs(self) -> tuple[TokenPair, ...]:
        return self._pairs

    def rank(self, pair: TokenPair) -> int | None:
        return self._ranks.get(pair)

    def merged(self, pair: TokenPair) -> TokenStr:
        """Return the symbol a learned pair merges into."""
        if pair not in self._ranks:
            raise KeyError(pair)
        return pair[0] + pair[1]

    def __getitem__(self, rank: int) -> TokenPair:
        return self._pairs[rank]

    def __iter__(self) -> Iterator[TokenPair]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __contains__(self, pair: object) -> bool:
        return pair in self._ranks

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MergeTable):
            return NotImplemented
        return self._pairs == other._pairs

    def __hash__(self) -> int:
        return hash(self._pairs)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(n_merges={len(self)})"


@dataclass(frozen=True, eq=False)
class TokenizerModel:
    """
    Everything encode/decode needs, frozen at construction.

    The vocabulary is frozen and special tokens are exposed through a
    read-only view, so one model can be shared across threads and tokenizer
    instances without aliasing surprises.
    """

    vocab: Vocabulary
    merges: MergeTable
    special_tokens: Mapping[str, Token] = field(
        default_factory=lambda: dict(DEFAULT_SPECIAL_TOKENS)
    )
    pattern: str = TokenPattern.GPT2.value
    version: str = FORMAT_VERSION

    def __post_init__(self) -> None:
        validate_special_tokens(self.special_tokens)
        for seq, tok in self.special_tokens.items():
            if self.vocab.get_id(seq) != tok:
                raise VocabularyError(
                    f"special token {seq!r} must map to its reserved id", invalid_tok=tok
                )
        object.__setattr__(
            self, "special_tokens", MappingProxyType(dict(self.special_tokens))
        )
        self.vocab.freeze()

    @classmethod
    def from_merges(
        cls,
        merges: Iterable[TokenPair],
        special_tokens: Mapping[str, Token] | None = None,
        pattern: TokenPattern | str | None = None,
    ) -> "TokenizerModel":
        """
        Build a model whose ids are fully determined by the merge order.

        Ids 0-255 are the byte glyphs, special tokens take their reserved ids,
        then every merge that yields a new symbol gets the next id from 256 up
        in rank order.

        :raises VocabularyError: If a merge references a symbol not yet in the
            vocabulary, a merge result equals a special literal, or merge ids
            would run into the special token range.
        """
        special = dict(DEFAULT_SPECIAL_TOKENS if special_tokens is None else special_tokens)
        validate_special_tokens(special)

        vocab = Vocabulary.with_byte_glyphs(CODEC)
        for seq, tok in special.items():
            vocab.add(seq, tok)

        table = MergeTable(merges)
        reserved = set(special.values())
        next_id = N_BYTES
        for first, second in table:
            if first not in vocab or second not in vocab:
                raise VocabularyError(
                    "merge references unknown symbol", invalid_tok=f"{first} {second}"
                )
            merged = first + second
            if merged in special:
                raise VocabularyError(
                    "merge result collides with special token", invalid_tok=merged
                )
            # a symbol reachable through two different merges keeps its first id
            if merged in vocab:
                continue
            if next_id in reserved:
                raise VocabularyError(
                    "merge ids run into the special token range", invalid_tok=next_id
                )
            vocab.add(merged, next_id)
            next_id += 1

        log.debug(
            f"built vocabulary with {len(vocab)} tokens ({len(table)} merges, {len(special)} special)"
        )
        return cls(vocab, table, special, resolve_pattern(pattern))

    @classmethod
    def from_vocab(
        cls,
        vocab: Mapping[TokenStr, Token],
        merges: Iterable[TokenPair],
        special_tokens: Mapping[str, Token] | None = None,
        pattern: TokenPattern | str | None = None,
    ) -> "TokenizerModel":
        """
        Build a model from an explicit token -> id table (e.g. a loaded file).

        Special tokens missing from ``vocab`` are added at their reserved ids.

        :raises VocabularyError: If two tokens share an id or a special token
            appears in ``vocab`` under a different id.
        """
        special = dict(DEFAULT_SPECIAL_TOKENS if special_tokens is None else special_tokens)
        store = Vocabulary()
        for token, tok in vocab.items():
            store.add(token, tok)
        for seq, tok in special.items():
            if seq not in store:
                store.add(seq, tok)

        return cls(store, MergeTable(merges), special, resolve_pattern(pattern))

    def merged_id(self, pair: TokenPair) -> Token:
        """Return the id of the symbol a learned pair merges into."""
        return self.vocab.id_of(self.merges.merged(pair))

    def is_special_id(self, token_id: Token) -> bool:
        token = self.vocab.get_token(token_id)
        return token is not None and self.special_tokens.get(token) == token_id

    @property
    def eot_id(self) -> Token:
        """Id used in place of unknown tokens."""
        return self.special_tokens.get(ENDOFTEXT, 0)

    @property
    def vocab_size(self) -> int:
        return len(self.vocab)


__all__ = ["FORMAT_VERSION", "MergeTable", "TokenizerModel"]
