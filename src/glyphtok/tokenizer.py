"""
Byte-level BPE tokenizer: encode, decode, tokenize and train.
"""

from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Callable, Final, Literal
import logging
import os

from ._bpe import bpe_merge
from ._sanitise import render_token
from .cache import BPECache
from .chat import format_chat_messages
from .codec import CODEC, N_BYTES
from .errors import (
    GlyphError,
    StrategyError,
    TokenDecodeError,
    UnknownIdError,
    UnknownTokenError,
    VocabularyError,
)
from .model import TokenizerModel
from .pattern import Segmenter, TokenPattern
from .serialization import load_model, save_model
from .special import DEFAULT_SPECIAL_TOKENS, Segment, SpecialTokenSplitter
from .strategy import SpecialTokenStrategy
from .trainer import (
    BPETrainingResult,
    CorpusSlice,
    TrainingConfig,
    build_word_freqs,
    iter_corpus_batches,
    read_corpus,
    train_bpe,
)
from .types import Token, TokenStr

log = logging.getLogger(__name__)

DecodeErrors = Literal["glyph", "replace", "strict"]
_DECODE_ERRORS: Final[frozenset[str]] = frozenset({"glyph", "replace", "strict"})


class UnknownTokenPolicy(str, Enum):
    """
    What encode does with a token string that has no id.

    ``LENIENT`` substitutes the end-of-text id and logs a warning; ``STRICT``
    raises and fails the whole call. The same choice applies to unknown ids
    during decode (skipped and logged, or raised).
    """

    LENIENT = "lenient"
    STRICT = "strict"

    @classmethod
    def get(cls, name: str) -> "UnknownTokenPolicy":
        """Get policy by name (case-insensitive)."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise StrategyError(
                "unknown policy",
                invalid_name=name,
                available_strats=[policy.value for policy in cls],
            ) from None


class Tokenizer:
    """
    Facade over an immutable :class:`TokenizerModel`.

    Encoding runs the special token splitter first, then segments each plain
    span, maps every chunk to byte glyphs, merges them with the ranked merge
    table and looks the resulting token strings up in the vocabulary. The
    tokenizer's only mutable state is the chunk cache, which never affects
    output.
    """

    def __init__(
        self,
        model: TokenizerModel,
        cache: BPECache | None = None,
        unknown_policy: UnknownTokenPolicy | str = UnknownTokenPolicy.LENIENT,
    ) -> None:
        self.model = model
        self.segmenter = Segmenter(model.pattern)
        self.cache: BPECache = BPECache() if cache is None else cache
        self.unknown_policy = (
            unknown_policy
            if isinstance(unknown_policy, UnknownTokenPolicy)
            else UnknownTokenPolicy.get(unknown_policy)
        )
        self._splitter = SpecialTokenSplitter(model.special_tokens)
        # set by train() / train_from_file()
        self.training_result: BPETrainingResult | None = None
        self.corpus: CorpusSlice | None = None

    # Construction
    # ---------------------------------------------------------------------------

    @classmethod
    def byte_level(
        cls,
        special_tokens: Mapping[str, Token] | None = None,
        pattern: TokenPattern | str | None = None,
        **kwargs,
    ) -> "Tokenizer":
        """Return a tokenizer without merges: one id per UTF-8 byte."""
        return cls(TokenizerModel.from_merges([], special_tokens, pattern), **kwargs)

    @classmethod
    def from_pretrained(
        cls,
        directory: str | Path,
        *,
        pattern: str | None = None,
        special_tokens: Mapping[str, Token] | None = None,
        **kwargs,
    ) -> "Tokenizer":
        """
        Load a tokenizer saved with :meth:`save`.

        .. code-block:: python

            tokenizer = Tokenizer.from_pretrained("path/to/model_dir")
            ids = tokenizer.encode("Hello world")
        """
        return cls(load_model(directory, pattern, special_tokens), **kwargs)

    def save(self, directory: str | Path) -> Path:
        """Persist the model (vocab, merges, special tokens, config) to ``directory``."""
        return save_model(self.model, directory)

    @classmethod
    def train(
        cls,
        corpus: str | Iterable[str],
        vocab_size: int,
        *,
        special_tokens: Mapping[str, Token] | None = None,
        pattern: TokenPattern | str | None = None,
        config: TrainingConfig | None = None,
        should_stop: Callable[[], bool] | None = None,
        verbose: bool = False,
        show_progress: bool = True,
        **kwargs,
    ) -> "Tokenizer":
        """
        Learn a merge table from ``corpus`` and return a tokenizer using it.

        :param corpus: Training text, or an iterable of documents.
        :param vocab_size: Target size counting the 256 byte glyphs plus
            learned tokens; special tokens live in their own reserved range.
        :param special_tokens: Special token table (defaults to the built-in one).
        :param pattern: Segmentation pattern (defaults to GPT-2).
        :param config: Training constants; defaults to :meth:`TrainingConfig.full`.
        :param should_stop: Checked between merges; return ``True`` to stop.
        :param verbose: Log each learned merge when ``True``.
        :param show_progress: Display a progress bar when ``True``.
        :raises VocabularyError: If ``vocab_size`` is less than or equal to 256.
        :raises TrainingError: If the corpus yields nothing to train on.
        """
        if vocab_size <= N_BYTES:
            raise VocabularyError(
                "vocab size must be greater than 256", vocab_size=vocab_size
            )

        config = config or TrainingConfig.full()
        special = dict(DEFAULT_SPECIAL_TOKENS if special_tokens is None else special_tokens)
        segmenter = Segmenter(pattern)

        texts = [corpus] if isinstance(corpus, str) else corpus
        word_freqs = build_word_freqs(texts, segmenter, special, CODEC)

        log.info(
            f"training BPE to vocab size {vocab_size} (min frequency {config.min_frequency})"
        )
        result = train_bpe(
            word_freqs,
            vocab_size - N_BYTES,
            min_frequency=config.min_frequency,
            should_stop=should_stop,
            verbose=verbose,
            show_progress=show_progress,
            log_every=config.log_every,
        )

        model = TokenizerModel.from_merges(result.merges, special, segmenter.pattern)
        tokenizer = cls(model, **kwargs)
        tokenizer.training_result = result
        log.info(f"training complete, final vocabulary size: {model.vocab_size}")
        return tokenizer

    @classmethod
    def train_from_file(
        cls,
        path: str | Path,
        vocab_size: int,
        *,
        fast: bool = False,
        config: TrainingConfig | None = None,
        output_dir: str | Path | None = None,
        **kwargs,
    ) -> "Tokenizer":
        """
        Train on a UTF-8 corpus file and optionally save the result.

        ``fast`` selects :meth:`TrainingConfig.fast` (bounded read, higher
        frequency threshold) unless ``config`` is given. Without a byte cap and
        with ``config.batch_size`` set, the file is streamed in line batches
        whose chunk counts are summed into one frequency table. Otherwise the
        file (or its capped prefix) is read in one piece and the part actually
        used is available as ``tokenizer.corpus``.
        """
        config = config or (TrainingConfig.fast() if fast else TrainingConfig.full())

        if config.batch_size is not None and config.max_corpus_bytes is None:
            batches = iter_corpus_batches(path, config.batch_size)
            tokenizer = cls.train(batches, vocab_size, config=config, **kwargs)
        else:
            corpus = read_corpus(path, config.max_corpus_bytes)
            tokenizer = cls.train(corpus.text, vocab_size, config=config, **kwargs)
            tokenizer.corpus = corpus

        if output_dir is not None:
            tokenizer.save(output_dir)
        return tokenizer

    # Encoding
    # ---------------------------------------------------------------------------

    def _split(
        self, text: str, strategy: SpecialTokenStrategy | None
    ) -> list[Segment]:
        """Split on the special tokens the strategy allows (all of them by default)."""
        if strategy is None:
            return self._splitter.split(text)

        allowed = strategy.handle(text, self.model.special_tokens)
        if allowed.keys() == self.model.special_tokens.keys():
            return self._splitter.split(text)
        return SpecialTokenSplitter(allowed).split(text)

    def _bpe(self, chunk: str) -> tuple[TokenStr, ...]:
        """Merge one pre-tokenization chunk, memoized by the chunk text."""
        cached = self.cache.get(chunk)
        if cached is not None:
            return cached

        glyphs = CODEC.text_to_glyphs(chunk)
        tokens = tuple(bpe_merge(glyphs, self.model.merges.ranks))
        self.cache.put(chunk, tokens)
        return tokens

    def _iter_tokens(
        self, text: str, strategy: SpecialTokenStrategy | None
    ) -> Iterable[tuple[TokenStr, bool]]:
        for seg in self._split(text, strategy):
            if seg.is_special:
                yield seg.text, True
                continue
            for chunk in self.segmenter.iter_segments(seg.text):
                for token in self._bpe(chunk):
                    yield token, False

    def _token_id(self, token: TokenStr) -> Token:
        tok = self.model.vocab.get_id(token)
        if tok is not None:
            return tok
        if self.unknown_policy is UnknownTokenPolicy.STRICT:
            raise UnknownTokenError("token not in vocabulary", token=token)
        log.warning(
            f"unknown token {token!r}, substituting end-of-text id {self.model.eot_id}"
        )
        return self.model.eot_id

    def encode(
        self, text: str, strategy: SpecialTokenStrategy | None = None
    ) -> list[Token]:
        """
        Encode text into a sequence of token ids.

        Special token literals allowed by ``strategy`` (all registered ones
        when ``None``) map straight to their reserved ids; everything else is
        segmented and BPE encoded.

        :param text: Text to encode.
        :param strategy: Strategy used to select allowed special tokens.
        :returns: Encoded token ids.
        :raises UnknownTokenError: In strict mode, if a token has no id.
        :raises SpecialTokenError: If the strategy refuses the text.
        """
        special = self.model.special_tokens
        return [
            special[token] if is_special else self._token_id(token)
            for token, is_special in self._iter_tokens(text, strategy)
        ]

    def encode_batch(
        self,
        texts: list[str],
        strategy: SpecialTokenStrategy | None = None,
        num_workers: int | None = None,
    ) -> list[list[Token]]:
        """
        Encode many texts, in parallel threads when more than one worker is used.

        :param texts: Text inputs to encode.
        :param strategy: Optional special token handling strategy.
        :param num_workers: Worker threads; defaults to the CPU count.
        :returns: Encoded token sequences in input order.
        """
        if not texts:
            return []

        if num_workers is None:
            workers = os.cpu_count() or 1
        else:
            workers = max(1, num_workers)  # "0" interpreted as 1 worker

        if workers == 1 or len(texts) == 1:
            return [self.encode(text, strategy) for text in texts]

        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda text: self.encode(text, strategy), texts))

    def tokenize(
        self, text: str, strategy: SpecialTokenStrategy | None = None
    ) -> list[TokenStr]:
        """Run the encode pipeline but return token strings instead of ids."""
        return [token for token, _ in self._iter_tokens(text, strategy)]

    def display_tokens(
        self, text: str, strategy: SpecialTokenStrategy | None = None
    ) -> list[str]:
        """Like :meth:`tokenize` but with each glyph token rendered as readable text."""
        return [
            token if is_special else render_token(token)
            for token, is_special in self._iter_tokens(text, strategy)
        ]

    # Decoding
    # ---------------------------------------------------------------------------

    def decode(self, tokens: Iterable[Token], errors: DecodeErrors = "glyph") -> str:
        """
        Decode token ids back into text.

        Special token ids are emitted as their literal. Bytes of consecutive
        ordinary tokens are accumulated and UTF-8 decoded together, so a
        character split across token boundaries survives.

        :param tokens: Token ids to decode.
        :param errors: Handling of byte runs that are not valid UTF-8:
            ``"glyph"`` emits the run's glyph strings unchanged, ``"replace"``
            uses U+FFFD, ``"strict"`` raises.
        :raises TokenDecodeError: With ``errors="strict"`` on invalid UTF-8.
        :raises UnknownIdError: In strict mode, if an id is not in the vocabulary.
        """
        if errors not in _DECODE_ERRORS:
            raise ValueError(f"errors must be one of {sorted(_DECODE_ERRORS)}, got {errors!r}")

        out: list[str] = []
        run: list[TokenStr] = []
        run_ids: list[Token] = []

        def flush() -> None:
            if run:
                out.append(self._decode_run(run, run_ids, errors))
                run.clear()
                run_ids.clear()

        for tok in tokens:
            token = self.model.vocab.get_token(tok)
            if token is None:
                if self.unknown_policy is UnknownTokenPolicy.STRICT:
                    raise UnknownIdError("token id not in vocabulary", token_id=tok)
                log.warning(f"unknown token id {tok}, skipping")
                continue
            if self.model.is_special_id(tok):
                flush()
                out.append(token)
            else:
                run.append(token)
                run_ids.append(tok)

        flush()
        return "".join(out)

    def _decode_run(
        self, run: list[TokenStr], run_ids: list[Token], errors: DecodeErrors
    ) -> str:
        """Decode a maximal run of non-special tokens as one UTF-8 byte buffer."""
        try:
            raw = b"".join(CODEC.decode(token) for token in run)
        except GlyphError as e:
            if errors == "strict":
                raise TokenDecodeError(
                    "token is not a byte glyph string", token_ids=list(run_ids)
                ) from e
            log.warning(f"{e}; emitting literal token text")
            return "".join(run)

        if errors == "replace":
            return raw.decode("utf-8", errors="replace")
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            if errors == "strict":
                raise TokenDecodeError(
                    "decoded bytes are not valid UTF-8", token_ids=list(run_ids)
                ) from e
            log.warning(
                f"invalid UTF-8 in tokens {run_ids}, emitting glyph strings instead"
            )
            return "".join(run)

    def decode_batch(
        self, token_batch: list[list[Token]], errors: DecodeErrors = "glyph"
    ) -> list[str]:
        """Decode multiple token sequences."""
        return [self.decode(tokens, errors=errors) for tokens in token_batch]

    # Introspection
    # ---------------------------------------------------------------------------

    def is_special_token(self, token: str) -> bool:
        return token in self.model.special_tokens

    @property
    def special_tokens(self) -> dict[str, Token]:
        """Copy of the special token table."""
        return dict(self.model.special_tokens)

    def vocab_size(self) -> int:
        """Return the number of tokens in the vocabulary, special tokens included."""
        return self.model.vocab_size

    def token_to_id(self, token: TokenStr) -> Token:
        return self.model.vocab.id_of(token)

    def id_to_token(self, token_id: Token) -> TokenStr:
        return self.model.vocab.token_of(token_id)

    def clear_cache(self) -> None:
        self.cache.clear()

    def format_chat_messages(
        self, system: str, user: str, use_new_format: bool = False
    ) -> str:
        return format_chat_messages(system, user, use_new_format)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(vocab_size={self.vocab_size()}, "
            f"merges={len(self.model.merges)}, policy={self.unknown_policy.value})"
        )


__all__ = ["Tokenizer", "UnknownTokenPolicy", "DecodeErrors"]
