"""glyphtok: GPT-style byte-level BPE tokenization."""

from ._progress import disable_progress, enable_progress
from .cache import BPECache, NullCache
from .chat import (
    format_chat_messages,
    format_code_block,
    format_function_call,
    format_thought,
    format_tool_call,
)
from .codec import CODEC, ByteGlyphCodec, bytes_to_unicode
from .model import MergeTable, TokenizerModel
from .pattern import Segmenter, TokenPattern, list_patterns
from .special import (
    DEFAULT_SPECIAL_TOKENS,
    ENDOFTEXT,
    Segment,
    SpecialTokenSplitter,
)
from .strategy import (
    AllowAllStrategy,
    AllowCustomStrategy,
    AllowNoneRaiseStrategy,
    AllowNoneStrategy,
    SpecialTokenStrategy,
    get_strategy,
    list_strategies,
)
from .tokenizer import Tokenizer, UnknownTokenPolicy
from .trainer import StopReason, TrainingConfig
from .vocab import Vocabulary

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("glyphtok")
except PackageNotFoundError:
    __version__ = "dev"

__all__ = [
    "Tokenizer",
    "TokenizerModel",
    "MergeTable",
    "Vocabulary",
    "UnknownTokenPolicy",
    "TrainingConfig",
    "StopReason",
    "BPECache",
    "NullCache",
    "ByteGlyphCodec",
    "CODEC",
    "bytes_to_unicode",
    "Segmenter",
    "TokenPattern",
    "Segment",
    "SpecialTokenSplitter",
    "DEFAULT_SPECIAL_TOKENS",
    "ENDOFTEXT",
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "get_strategy",
    "list_strategies",
    "list_patterns",
    "format_chat_messages",
    "format_function_call",
    "format_tool_call",
    "format_code_block",
    "format_thought",
    "enable_progress",
    "disable_progress",
]
