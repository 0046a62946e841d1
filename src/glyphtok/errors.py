"""Custom exception hierarchy for glyphtok tokenization errors."""

import regex as re

from .types import Token


class GlyphTokError(Exception):
    """Base exception for all glyphtok errors."""


class SpecialTokenError(GlyphTokError):
    """Raised when special token handling fails."""

    def __init__(self, message: str, *, found_tokens: set[str] | None = None) -> None:
        """Initialize with optional found_tokens that get appended to the message."""
        if found_tokens:
            message = f"{message} (found: {', '.join(sorted(found_tokens))})"
        super().__init__(message)
        self.found_tokens = found_tokens


class TokenizationError(GlyphTokError):
    """Raised when tokenization fails."""

    def __init__(
        self,
        message: str,
        *,
        position: int | None = None,
        input_text: str | None = None,
    ) -> None:
        super().__init__(message)
        self.position = position
        self.input_text = input_text


class GlyphError(TokenizationError):
    """Raised when a character is not one of the 256 byte glyphs."""

    def __init__(self, message: str, *, glyph: str) -> None:
        super().__init__(f"{message} (glyph: {glyph!r} U+{ord(glyph):04X})")
        self.glyph = glyph


class TokenDecodeError(TokenizationError):
    """Raised when decoded bytes are not valid UTF-8 and strict decoding was requested."""

    def __init__(self, message: str, *, token_ids: list[Token] | None = None) -> None:
        if token_ids:
            message = f"{message} (tokens: {token_ids})"
        super().__init__(message)
        self.token_ids = token_ids


class VocabularyError(GlyphTokError):
    """Raised when vocabulary operations fail."""

    def __init__(
        self,
        message: str,
        *,
        vocab_size: int | None = None,
        invalid_tok: Token | str | None = None,
    ) -> None:
        """Initialize with optional token and vocab_size that get appended to the message."""
        extra = ""
        # training: target vocab size too small
        if vocab_size is not None:
            extra += f" (vocab size: {vocab_size})"
        # lookups: token or id not in the vocabulary
        if invalid_tok is not None:
            extra += f" (invalid token: {invalid_tok!r})"
        super().__init__(message + extra)
        self.vocab_size = vocab_size
        self.invalid_tok = invalid_tok


class UnknownTokenError(VocabularyError):
    """Raised when a token string has no vocabulary id."""

    def __init__(self, message: str, *, token: str) -> None:
        super().__init__(message, invalid_tok=token)
        self.token = token


class UnknownIdError(VocabularyError):
    """Raised when a token id is absent from the reverse vocabulary."""

    def __init__(self, message: str, *, token_id: Token) -> None:
        super().__init__(message, invalid_tok=token_id)
        self.token_id = token_id


class TrainingError(GlyphTokError):
    """Raised when tokenizer training fails."""

    def __init__(self, message: str, *, vocab_size: int | None = None) -> None:
        if vocab_size is not None:
            message = f"{message} (vocab size: {vocab_size})"
        super().__init__(message)
        self.vocab_size = vocab_size


class ModelLoadError(GlyphTokError):
    """Raised when loading a persisted tokenizer model fails."""

    def __init__(
        self,
        message: str,
        *,
        model_path: str | None = None,
        version_mismatch: tuple[str, str] | None = None,
    ) -> None:
        extra = ""
        if model_path:
            extra += f" (path: {model_path})"
        if version_mismatch is not None:
            extra += f" (expected: {version_mismatch[1]}) (got: {version_mismatch[0]})"
        super().__init__(message + extra)
        self.model_path = model_path
        self.version_mismatch = version_mismatch


class PatternError(GlyphTokError):
    """Raised when compiling and/or validating regex patterns."""

    def __init__(
        self,
        message: str,
        *,
        pattern: str | None = None,
        regex_err: re.error | None = None,
    ) -> None:
        """
        Initialize PatternError with pattern details.

        Args:
            message: Error message.
            pattern: The regex pattern that failed.
            regex_err: The underlying regex error from the regex library.
        """
        extra = ""
        if pattern:
            extra += f" (pattern: {pattern!r})"
        if regex_err:
            extra += f" (reason: {regex_err})"
        super().__init__(message + extra)
        self.pattern = pattern
        self.regex_err = regex_err


class StrategyError(GlyphTokError):
    """Raised when strategy or policy lookups fail."""

    def __init__(
        self,
        message: str,
        *,
        invalid_name: str | None = None,
        available_strats: list[str] | None = None,
    ) -> None:
        extra = ""
        if invalid_name:
            extra += f" (available: {available_strats}) (got: {invalid_name})"
        super().__init__(message + extra)
        self.invalid_name = invalid_name
        self.available_strats = available_strats
