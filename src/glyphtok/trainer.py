"""Standalone BPE training module."""

from collections import Counter
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final
import codecs
import logging

from tqdm import tqdm

from ._bpe import merge_pair
from ._decorators import measure_time
from ._progress import _is_enabled
from .codec import CODEC, ByteGlyphCodec
from .errors import TrainingError
from .pattern import Segmenter
from .special import SpecialTokenSplitter
from .types import TokenPair, WordFreqs

log = logging.getLogger(__name__)

FAST_MAX_CORPUS_BYTES: Final[int] = 500 * 1024 * 1024
DEFAULT_BATCH_LINES: Final[int] = 100_000


class StopReason(str, Enum):
    """Why a training run stopped."""

    TARGET_REACHED = "target_reached"
    BELOW_MIN_FREQUENCY = "below_min_frequency"
    NO_PAIRS = "no_pairs"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TrainingConfig:
    """
    Tunable training constants.

    :param min_frequency: A pair must occur at least this often to be merged.
    :param max_corpus_bytes: Read at most this many bytes of a corpus file;
        ``None`` reads everything.
    :param log_every: Log progress every this many merges.
    :param batch_size: Stream an uncapped corpus file this many lines at a
        time; ``None`` reads the file in one piece.
    """

    min_frequency: int = 2
    max_corpus_bytes: int | None = None
    log_every: int = 100
    batch_size: int | None = None

    def __post_init__(self) -> None:
        if self.min_frequency < 1:
            raise TrainingError(f"min_frequency must be >= 1, got {self.min_frequency}")
        if self.max_corpus_bytes is not None and self.max_corpus_bytes <= 0:
            raise TrainingError(
                f"max_corpus_bytes must be positive, got {self.max_corpus_bytes}"
            )
        if self.log_every < 1:
            raise TrainingError(f"log_every must be >= 1, got {self.log_every}")
        if self.batch_size is not None and self.batch_size < 1:
            raise TrainingError(f"batch_size must be >= 1, got {self.batch_size}")

    @classmethod
    def full(cls) -> "TrainingConfig":
        """Whole-corpus training streamed in line batches: merge any pair seen at least twice."""
        return cls(batch_size=DEFAULT_BATCH_LINES)

    @classmethod
    def fast(cls) -> "TrainingConfig":
        """Bounded training: first 500 MiB of the corpus, pairs seen at least 3 times."""
        return cls(min_frequency=3, max_corpus_bytes=FAST_MAX_CORPUS_BYTES)


@dataclass(frozen=True)
class CorpusSlice:
    """The part of a corpus file that was actually used for training."""

    text: str
    bytes_used: int
    total_bytes: int

    @property
    def truncated(self) -> bool:
        return self.bytes_used < self.total_bytes


@dataclass
class BPETrainingResult:
    """Results from one BPE training run."""

    merges: list[TokenPair]
    n_merges_completed: int
    n_new_tokens: int
    stop_reason: StopReason

    @property
    def stopped_early(self) -> bool:
        return self.stop_reason is not StopReason.TARGET_REACHED


def read_corpus(path: str | Path, max_bytes: int | None = None) -> CorpusSlice:
    """
    Read a UTF-8 corpus file, optionally only a fixed-size prefix.

    A multi-byte character cut in half by the limit is dropped rather than
    replaced, so the effective size reported may be a few bytes under
    ``max_bytes``.

    :raises TrainingError: If the file does not exist or cannot be read.
    """
    p = Path(path)
    if not p.is_file():
        raise TrainingError(f"corpus file does not exist: {p}")

    try:
        total = p.stat().st_size
        with p.open("rb") as f:
            data = f.read() if max_bytes is None else f.read(max_bytes)
    except OSError as e:
        raise TrainingError(f"failed to read corpus: {p}") from e

    truncated = len(data) < total
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    # final=False keeps an incomplete trailing sequence buffered instead of replacing it
    text = decoder.decode(data, final=not truncated)
    pending, _ = decoder.getstate()
    used = len(data) - len(pending)

    if truncated:
        log.warning(
            f"corpus truncated: using first {used:,} of {total:,} bytes from {p}"
        )
    else:
        log.info(f"read {used:,} bytes from {p}")

    return CorpusSlice(text=text, bytes_used=used, total_bytes=total)


def iter_corpus_batches(path: str | Path, batch_size: int) -> Iterator[str]:
    """
    Stream a UTF-8 corpus file as texts of at most ``batch_size`` whole lines.

    Line endings are kept, so the batches concatenate back to the file
    contents. Only one batch is held in memory at a time; pre-tokenization
    never spans two batches.

    :raises TrainingError: If the file does not exist, cannot be read, or
        ``batch_size`` is less than 1.
    """
    p = Path(path)
    if not p.is_file():
        raise TrainingError(f"corpus file does not exist: {p}")
    if batch_size < 1:
        raise TrainingError(f"batch_size must be >= 1, got {batch_size}")

    log.info(f"streaming {p} in batches of {batch_size:,} lines")
    return _read_line_batches(p, batch_size)


def _read_line_batches(p: Path, batch_size: int) -> Iterator[str]:
    lines: list[str] = []
    n_lines = 0
    try:
        # newline="" keeps "\r\n" intact, matching read_corpus
        with p.open("r", encoding="utf-8", errors="replace", newline="") as f:
            for line in f:
                lines.append(line)
                n_lines += 1
                if len(lines) >= batch_size:
                    log.info(f"processing batch ending at line {n_lines:,}")
                    batch = "".join(lines)
                    lines.clear()
                    yield batch
    except OSError as e:
        raise TrainingError(f"failed to read corpus: {p}") from e

    if lines:
        log.info(f"processing final batch ({n_lines:,} lines total)")
        yield "".join(lines)


def build_word_freqs(
    texts: Iterable[str],
    segmenter: Segmenter,
    special_tokens: Iterable[str] = (),
    codec: ByteGlyphCodec = CODEC,
) -> WordFreqs:
    """
    Pre-tokenize a corpus and count identical glyph sequences.

    Special token literals are cut out before segmentation so they never
    contribute to learned merges.
    """
    splitter = SpecialTokenSplitter(special_tokens)
    freqs: Counter[tuple[str, ...]] = Counter()
    n_chunks = 0

    for text in texts:
        for span in splitter.strip(text):
            for chunk in segmenter.iter_segments(span):
                freqs[tuple(codec.text_to_glyphs(chunk))] += 1
                n_chunks += 1

    log.info(
        f"pre-tokenized into {n_chunks:,} chunks ({len(freqs):,} unique glyph sequences)"
    )
    return dict(freqs)


def count_pairs(word_freqs: WordFreqs) -> dict[TokenPair, int]:
    """
    Count every adjacent pair occurrence, weighted by sequence frequency.

    Pairs are keyed in the order they are first encountered, which is the
    tie-break order for equal counts.
    """
    counts: dict[TokenPair, int] = {}
    for word, freq in word_freqs.items():
        for pair in zip(word, word[1:]):
            counts[pair] = counts.get(pair, 0) + freq
    return counts


def apply_merge(word_freqs: WordFreqs, pair: TokenPair) -> None:
    """Rewrite every sequence in ``word_freqs`` in place with ``pair`` merged."""
    first, second = pair
    merged = first + second
    out: WordFreqs = {}
    for word, freq in word_freqs.items():
        if len(word) > 1 and first in word:
            word = merge_pair(word, pair, merged)
        # two sequences may become identical after the merge
        out[word] = out.get(word, 0) + freq

    word_freqs.clear()
    word_freqs.update(out)


@measure_time
def train_bpe(
    word_freqs: WordFreqs,
    n_merges: int,
    min_frequency: int = 2,
    should_stop: Callable[[], bool] | None = None,
    verbose: bool = False,
    show_progress: bool = True,
    log_every: int = 100,
) -> BPETrainingResult:
    """
    Learn merges by repeatedly merging the most frequent adjacent pair.

    Training stops once ``n_merges`` new symbols were created, when the best
    pair occurs fewer than ``min_frequency`` times, when no pairs remain, or
    when ``should_stop`` returns ``True`` (checked between merges). Stopping
    early is not an error; the reason is reported on the result.

    :param word_freqs: Glyph sequence -> count table; consumed destructively.
    :param n_merges: Number of new vocabulary symbols to learn.
    :param min_frequency: Minimum pair count required to keep merging.
    :param should_stop: Optional cancellation check.
    :param verbose: Log each learned merge when ``True``.
    :param show_progress: Display a progress bar when ``True``.
    :param log_every: Log a progress line every this many merges.
    :returns: Learned merges in rank order and the stop reason.
    :raises TrainingError: If ``word_freqs`` is empty or ``n_merges`` is negative.
    """
    if n_merges < 0:
        raise TrainingError(f"number of merges must be >= 0, got {n_merges}")
    if not word_freqs:
        raise TrainingError("empty corpus, no training performed")

    merges: list[TokenPair] = []
    learned: set[str] = set()
    stop_reason = StopReason.TARGET_REACHED

    with tqdm(
        total=n_merges,
        desc="bpe merges",
        unit="merge",
        disable=not (show_progress and _is_enabled()),
    ) as bar:
        while len(learned) < n_merges:
            if should_stop is not None and should_stop():
                stop_reason = StopReason.CANCELLED
                break

            counts = count_pairs(word_freqs)
            if not counts:
                stop_reason = StopReason.NO_PAIRS
                break

            # max() keeps the first key on ties, i.e. the first discovered pair
            best = max(counts, key=counts.__getitem__)
            if counts[best] < min_frequency:
                stop_reason = StopReason.BELOW_MIN_FREQUENCY
                break

            apply_merge(word_freqs, best)
            merges.append(best)

            merged = best[0] + best[1]
            # the same symbol can be reached through two different pairs
            if merged not in learned:
                learned.add(merged)
                bar.update(1)

            if verbose:
                log.info(
                    f"merge {len(learned)}/{n_merges}: {best} -> {merged!r} (count {counts[best]})"
                )
            elif len(merges) % log_every == 0:
                log.info(f"completed {len(merges)} merges, {len(learned)} new tokens")

    if stop_reason is not StopReason.TARGET_REACHED:
        log.warning(
            f"stopping early after {len(learned)} new tokens "
            f"(requested {n_merges}): {stop_reason.value}"
        )

    return BPETrainingResult(
        merges=merges,
        n_merges_completed=len(merges),
        n_new_tokens=len(learned),
        stop_reason=stop_reason,
    )


__all__ = [
    "FAST_MAX_CORPUS_BYTES",
    "StopReason",
    "TrainingConfig",
    "CorpusSlice",
    "BPETrainingResult",
    "DEFAULT_BATCH_LINES",
    "read_corpus",
    "iter_corpus_batches",
    "build_word_freqs",
    "count_pairs",
    "apply_merge",
    "train_bpe",
]
