"""
Core Byte Pair Encoding (BPE) merge operations.
"""

from collections.abc import Mapping, Sequence
import heapq

from typing_extensions import deprecated

from .types import TokenPair, TokenStr


def get_pairs(word: Sequence[TokenStr]) -> list[TokenPair]:
    """Return all adjacent symbol pairs of ``word`` in order (duplicates kept)."""
    return list(zip(word, word[1:]))


def merge_pair(
    word: Sequence[TokenStr], pair: TokenPair, merged: TokenStr | None = None
) -> tuple[TokenStr, ...]:
    """
    Replace every non-overlapping occurrence of ``pair`` in ``word``, scanning
    left to right, with a single merged symbol.

    :param word: Current symbol sequence.
    :param pair: The adjacent pair to merge.
    :param merged: Symbol replacing the pair; defaults to the concatenation.
    :return: New symbol sequence with merges applied.
    """
    first, second = pair
    if merged is None:
        merged = first + second

    out: list[TokenStr] = []
    i = 0
    n = len(word)
    while i < n:
        if i < n - 1 and word[i] == first and word[i + 1] == second:
            out.append(merged)
            i += 2
        else:
            out.append(word[i])
            i += 1

    return tuple(out)


def bpe_merge(
    glyphs: Sequence[TokenStr], ranks: Mapping[TokenPair, int]
) -> list[TokenStr]:
    """
    Apply learned merges to one chunk until no adjacent pair has a rank.

    Each round applies only the pair with the globally lowest rank, at every
    position it occurs (left to right, non-overlapping), which replays the
    order merges were learned in.

    Instead of rescanning the whole chunk per round, candidate pairs live in a
    heap keyed by ``(rank, position)`` over a doubly linked list of symbols.
    Entries are validated lazily when popped, and all entries sharing the
    lowest rank are drained before pairs created by those merges are pushed,
    so the output is identical to :func:`slow_bpe_merge`.

    :param glyphs: The chunk as a sequence of byte glyphs (or symbols).
    :param ranks: Merge table, pair -> rank (lower merges first).
    :return: Fully merged token strings.
    """
    symbols: list[TokenStr | None] = list(glyphs)
    n = len(symbols)
    if n < 2:
        return [s for s in symbols if s is not None]

    # linked list over positions, -1 marks either end
    nxt = list(range(1, n + 1))
    nxt[-1] = -1
    prev = list(range(-1, n - 1))

    heap: list[tuple[int, int, TokenStr, TokenStr]] = []
    for i in range(n - 1):
        left, right = symbols[i], symbols[i + 1]
        rank = ranks.get((left, right))
        if rank is not None:
            heap.append((rank, i, left, right))
    heapq.heapify(heap)

    def push(i: int) -> None:
        # push the pair starting at position i, if it has a rank
        j = nxt[i]
        if j == -1:
            return
        left, right = symbols[i], symbols[j]
        rank = ranks.get((left, right))
        if rank is not None:
            heapq.heappush(heap, (rank, i, left, right))

    while heap:
        best = heap[0][0]
        # entries pop in position order for equal rank
        batch = []
        while heap and heap[0][0] == best:
            batch.append(heapq.heappop(heap))

        merged_at: list[int] = []
        for _, i, left, right in batch:
            j = nxt[i]
            # stale: a symbol was consumed or replaced since the push
            if j == -1 or symbols[i] != left or symbols[j] != right:
                continue
            symbols[i] = left + right
            symbols[j] = None
            k = nxt[j]
            nxt[i] = k
            if k != -1:
                prev[k] = i
            merged_at.append(i)

        for i in merged_at:
            if symbols[i] is None:
                continue
            if prev[i] != -1:
                push(prev[i])
            push(i)

    return [s for s in symbols if s is not None]


@deprecated(
    "Reference implementation for documentation only. Use `bpe_merge()` instead."
)
def slow_bpe_merge(
    glyphs: Sequence[TokenStr], ranks: Mapping[TokenPair, int]
) -> list[TokenStr]:
    """
    Apply learned merges by rescanning every adjacent pair each round.

    Naive algorithm: O(n^2) rank lookups for a chunk of length n, since every
    round rescans the remaining pairs to find the lowest rank. Kept as the
    oracle :func:`bpe_merge` is tested against.
    """
    word = tuple(glyphs)

    while len(word) > 1:
        pairs = get_pairs(word)
        best = min(pairs, key=lambda pair: ranks.get(pair, float("inf")))
        # none of the remaining pairs was ever learned
        if best not in ranks:
            break
        word = merge_pair(word, best)

    return list(word)


__all__ = ["get_pairs", "merge_pair", "bpe_merge", "slow_bpe_merge"]
