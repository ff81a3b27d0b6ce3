"""Error taxonomy for stage contracts and configuration dispatch.

All of these are programming or configuration errors rather than transient
conditions.  Nothing in this package retries them; they propagate to the
engine, which decides whether to abort the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pyarrow as pa


class PipestageError(Exception):
    """Base class for all pipestage errors."""


class InvalidSchemaError(PipestageError, ValueError):
    """A batch's schema does not have the shape a stage variant requires."""

    def __init__(self, message: str, field: pa.Field | None = None) -> None:
        super().__init__(message)
        self.field = field


@dataclass(frozen=True)
class ConfigProblem:
    """One schema violation found while decoding a config document."""

    field: str
    message: str
    expected: str | None = None
    actual: str | None = None

    def __str__(self) -> str:
        text = f"{self.field}: {self.message}"
        if self.expected or self.actual:
            text += f" (expected {self.expected or '?'}, got {self.actual or '?'})"
        return text


class ConfigParseError(PipestageError, ValueError):
    """A config document does not match the schema registered for its kind."""

    def __init__(self, kind: str, problems: list[ConfigProblem]) -> None:
        self.kind = kind
        self.problems = problems
        details = "; ".join(str(p) for p in problems) or "invalid document"
        super().__init__(f"Invalid '{kind}' config: {details}")

    @property
    def fields(self) -> list[str]:
        return [p.field for p in self.problems]


class ConfigKindMismatchError(PipestageError, TypeError):
    """A config was used under a kind other than the one it belongs to."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Config kind mismatch: expected a '{expected}' config, got a '{actual}' config"
        )


class RecordDecodeError(PipestageError, ValueError):
    """A single record in a batch could not be decoded (bad UTF-8, bad JSON)."""

    def __init__(self, message: str, row: int | None = None) -> None:
        self.row = row
        super().__init__(message if row is None else f"Row {row}: {message}")
