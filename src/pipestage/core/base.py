"""Abstract base classes for pipeline stages.

A pipeline is one Extractor feeding one Transformer:
  - Extractor   — produces one Batch per pipeline tick
  - Transformer — turns each Batch into a new Batch for the next stage

Transformers come in four shapes.  All of them are driven by the engine
through the same ``initialize`` / ``transform`` / ``cleanup`` calls:

  - Transformer           — works on the whole Batch
  - TextTransformer       — works on the first column as ``str`` records
  - ByteTransformer       — works on the first column as ``bytes`` records
  - SimpleByteTransformer — byte records plus a ``UserTransformConfig``

The narrower shapes do not inherit from each other; each one applies the
record adapter and delegates to its own abstract method.
"""

from __future__ import annotations

import abc
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from pipestage.core import adapter
from pipestage.core.configs import StageConfig, UserTransformConfig, expect_config
from pipestage.models.batch import Batch

if TYPE_CHECKING:
    from pipestage.observability.logging import StageLogger


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Outcome of a single stage invocation."""

    stage_name: str
    status: StageStatus
    elapsed_s: float
    records_in: int = 0
    records_out: int = 0
    error: Exception | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == StageStatus.SUCCESS


@dataclass(frozen=True)
class StageContext:
    """Execution context handed to every stage call."""

    pipeline_name: str
    batch_interval_s: float = 1.0
    batch_index: int = 0
    properties: Mapping[str, Any] = field(default_factory=dict)

    def for_batch(self, batch_index: int) -> StageContext:
        return StageContext(
            pipeline_name=self.pipeline_name,
            batch_interval_s=self.batch_interval_s,
            batch_index=batch_index,
            properties=self.properties,
        )


class PipelineStage(abc.ABC):
    """Lifecycle hooks shared by every stage.

    The engine calls ``initialize`` once before the first batch and
    ``cleanup`` once after the last one.  Neither is re-entrant; a stage
    may keep private state between calls.
    """

    @property
    def name(self) -> str:
        return getattr(self, "_registry_name", self.__class__.__name__)

    def initialize(self, context: StageContext, config: StageConfig, logger: StageLogger) -> None:
        """One-time setup (open connections, build lookup tables, ...)."""

    def cleanup(self, context: StageContext, config: StageConfig, logger: StageLogger) -> None:
        """One-time teardown after the pipeline stops or the stage is replaced."""


# --------------------------------------------------------------------------- #
#  Extractor                                                                    #
# --------------------------------------------------------------------------- #


class Extractor(PipelineStage):
    """Produces the batch for each pipeline tick.

    To feed a byte- or text-level transformer, the first column of the
    returned batch must be text or raw bytes.
    """

    @abc.abstractmethod
    def extract(
        self,
        context: StageContext,
        config: StageConfig,
        logger: StageLogger,
    ) -> Batch | None:
        """Return this tick's batch, or ``None`` once the source is exhausted."""


# --------------------------------------------------------------------------- #
#  Transformer                                                                  #
# --------------------------------------------------------------------------- #


class Transformer(PipelineStage):
    """Transforms the incoming Batch.

    ``transform`` must not modify ``batch``; the Batch it returns becomes the
    input of the next stage and its schema is the stage's own choice.
    """

    @abc.abstractmethod
    def transform(
        self,
        context: StageContext,
        batch: Batch,
        config: StageConfig,
        logger: StageLogger,
    ) -> Batch:
        """Apply this transformation and return the resulting batch."""


class TextTransformer(Transformer):
    """Transformer over the first column as UTF-8 text records.

    Raw-byte first columns are decoded as UTF-8; any other first column
    type raises ``InvalidSchemaError`` before a single row is read.
    """

    def transform(
        self,
        context: StageContext,
        batch: Batch,
        config: StageConfig,
        logger: StageLogger,
    ) -> Batch:
        records = adapter.to_text_records(batch)
        return self.transform_text(context, records, config, logger)

    @abc.abstractmethod
    def transform_text(
        self,
        context: StageContext,
        records: Iterator[str | None],
        config: StageConfig,
        logger: StageLogger,
    ) -> Batch:
        """Transform this batch's text records (single pass, row order)."""


class ByteTransformer(Transformer):
    """Transformer over the first column as raw byte records.

    Text first columns are encoded as UTF-8; any other first column type
    raises ``InvalidSchemaError`` before a single row is read.
    """

    def transform(
        self,
        context: StageContext,
        batch: Batch,
        config: StageConfig,
        logger: StageLogger,
    ) -> Batch:
        records = adapter.to_byte_records(batch)
        return self.transform_bytes(context, records, config, logger)

    @abc.abstractmethod
    def transform_bytes(
        self,
        context: StageContext,
        records: Iterator[bytes | None],
        config: StageConfig,
        logger: StageLogger,
    ) -> Batch:
        """Transform this batch's byte records (single pass, row order)."""


class SimpleByteTransformer(Transformer):
    """Byte-record transformer that receives its ``UserTransformConfig`` directly.

    The engine only ever passes a config decoded under the ``user-stage``
    kind to a stage resolved from it; anything else is reported as
    ``ConfigKindMismatchError``.
    """

    def initialize(self, context: StageContext, config: StageConfig, logger: StageLogger) -> None:
        user_config = expect_config(config, UserTransformConfig)
        self.initialize_user(context, user_config, logger)

    def transform(
        self,
        context: StageContext,
        batch: Batch,
        config: StageConfig,
        logger: StageLogger,
    ) -> Batch:
        user_config = expect_config(config, UserTransformConfig)
        records = adapter.to_byte_records(batch)
        return self.transform_user(context, records, user_config, logger)

    def initialize_user(
        self,
        context: StageContext,
        config: UserTransformConfig,
        logger: StageLogger,
    ) -> None:
        """Setup with the author's config.  The default does nothing."""

    @abc.abstractmethod
    def transform_user(
        self,
        context: StageContext,
        records: Iterator[bytes | None],
        config: UserTransformConfig,
        logger: StageLogger,
    ) -> Batch:
        """Transform this batch's byte records using the author's config."""
