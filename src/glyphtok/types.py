"""
Core types for tokenization.
"""

from typing import TypeAlias

Token: TypeAlias = int
TokenStr: TypeAlias = str
TokenPair: TypeAlias = tuple[TokenStr, TokenStr]
WordFreqs: TypeAlias = dict[tuple[TokenStr, ...], int]
