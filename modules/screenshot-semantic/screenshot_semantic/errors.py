"""Exception types raised by the screenshot analysis and search core."""


class ScreenshotSemanticError(Exception):
    """Base class for errors raised by this package."""


class ImageReadError(ScreenshotSemanticError):
    """The source image bytes could not be read."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        message = f"Could not read image: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class EmbeddingError(ScreenshotSemanticError):
    """The embedding API failed or returned an unusable vector."""


class DimensionMismatchError(ScreenshotSemanticError, ValueError):
    """Two vectors that must share a dimensionality do not."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {actual}"
        )


class EmbeddingIndexError(ScreenshotSemanticError):
    """The persisted embedding index could not be loaded."""


class InvalidFilterRuleError(ScreenshotSemanticError, ValueError):
    """A smart folder rule does not decode to a known rule kind."""
