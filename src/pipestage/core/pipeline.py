"""Pipeline engine — drives one Extractor and one Transformer batch by batch."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from pipestage.core.base import (
    Extractor,
    StageContext,
    StageResult,
    StageStatus,
    Transformer,
)
from pipestage.core.configs import StageConfig, extract_configs, transform_configs
from pipestage.core.registry import registry
from pipestage.models.batch import Batch
from pipestage.observability.logging import StageLogger, get_stage_logger
from pipestage.observability.metrics import PipelineMetrics

log = structlog.get_logger(__name__)

BatchCallback = Callable[[Batch], None]


class PhaseDefinition(BaseModel):
    """One stage slot of a pipeline definition: a kind tag plus its JSON config."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: str
    config: dict[str, Any]


class PipelineDefinition(BaseModel):
    """Wire form of a pipeline, as stored in a definition file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    extract: PhaseDefinition
    transform: PhaseDefinition
    batch_interval_s: float = Field(default=0.0, ge=0.0)
    max_batches: int | None = Field(default=None, gt=0)
    stop_on_error: bool = True


@dataclass
class PipelineResult:
    """Aggregated result of a complete pipeline execution."""

    pipeline_name: str
    status: StageStatus
    elapsed_s: float
    batches_processed: int
    total_rows: int
    stage_results: list[StageResult] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == StageStatus.SUCCESS

    def summary(self) -> str:
        lines = [
            f"Pipeline '{self.pipeline_name}': {self.status.value}",
            f"  elapsed   : {self.elapsed_s:.3f}s",
            f"  batches   : {self.batches_processed}",
            f"  rows      : {self.total_rows}",
        ]
        if self.errors:
            lines.append(f"  errors    : {len(self.errors)}")
            for exc in self.errors:
                lines.append(f"    {type(exc).__name__}: {exc}")
        for r in self.stage_results:
            lines.append(
                f"  [{r.stage_name}] {r.status.value} "
                f"in={r.records_in} out={r.records_out} "
                f"t={r.elapsed_s:.3f}s"
            )
        for name, m in self.metrics.get("stages", {}).items():
            lines.append(
                f"  stage {name}: calls={m['invocations']} errors={m['errors']} "
                f"rows_in={m['rows_in']} rows_out={m['rows_out']} "
                f"avg={m['avg_elapsed_s']:.3f}s"
            )
            if m["last_error"]:
                lines.append(f"    last error: {m['last_error']}")
        return "\n".join(lines)


class Pipeline:
    """Runs one Extractor → Transformer pair over successive batches.

    Usage::

        pipeline = Pipeline.from_definition({
            "name": "lines-to-json",
            "extract": {"kind": "test-lines", "config": {"value": "{}\\n[]"}},
            "transform": {"kind": "json-stage", "config": {"column_name": "doc"}},
            "max_batches": 3,
        })
        result = pipeline.run(on_batch=print)

    Stage configs are decoded once, when the pipeline is built, and the
    same config object is passed to every call.  Each stage instance is
    initialized once before its first batch and cleaned up exactly once:
    when the run ends (normally or not) or when it is replaced.
    """

    def __init__(
        self,
        name: str,
        extractor: Extractor,
        extract_config: StageConfig,
        transformer: Transformer,
        transform_config: StageConfig,
        batch_interval_s: float = 0.0,
        max_batches: int | None = None,
        stop_on_error: bool = True,
    ) -> None:
        self.name = name
        self.extractor = extractor
        self.extract_config = extract_config
        self.transformer = transformer
        self.transform_config = transform_config
        self.batch_interval_s = batch_interval_s
        self.max_batches = max_batches
        self.stop_on_error = stop_on_error
        self._context = StageContext(pipeline_name=name, batch_interval_s=batch_interval_s)
        self._extractor_ready = False
        self._transformer_ready = False
        self._transformer_failed = False
        self._closed = False
        self._metrics = PipelineMetrics(pipeline_name=name)

    @classmethod
    def from_definition(cls, definition: PipelineDefinition | Mapping[str, Any]) -> Pipeline:
        """Decode both stage configs and resolve both stage classes."""
        if not isinstance(definition, PipelineDefinition):
            definition = PipelineDefinition.model_validate(definition)

        extract_config = extract_configs.decode(definition.extract.kind, definition.extract.config)
        transform_config = transform_configs.decode(
            definition.transform.kind, definition.transform.config
        )
        extractor_cls = registry.resolve_extractor(definition.extract.kind)
        transformer_cls = registry.resolve_transformer(definition.transform.kind, transform_config)

        log.debug(
            "pipeline.resolved",
            pipeline=definition.name,
            extractor=extractor_cls.__name__,
            transformer=transformer_cls.__name__,
        )
        return cls(
            name=definition.name,
            extractor=extractor_cls(),
            extract_config=extract_config,
            transformer=transformer_cls(),
            transform_config=transform_config,
            batch_interval_s=definition.batch_interval_s,
            max_batches=definition.max_batches,
            stop_on_error=definition.stop_on_error,
        )

    @property
    def metrics(self) -> PipelineMetrics:
        return self._metrics

    # ------------------------------------------------------------------ #
    #  Public interface                                                     #
    # ------------------------------------------------------------------ #

    def run(self, on_batch: BatchCallback | None = None) -> PipelineResult:
        """Run until the extractor is exhausted or ``max_batches`` is reached.

        A pipeline runs once.  Its stages are initialized and cleaned up
        within that run, so a second call raises ``RuntimeError``.
        """
        if self._closed:
            raise RuntimeError(
                f"Pipeline '{self.name}' has already run; build a new one with fresh stages"
            )
        t0 = time.perf_counter()
        stage_results: list[StageResult] = []
        errors: list[Exception] = []
        batches = 0
        total_rows = 0

        log.info("pipeline.start", pipeline=self.name, max_batches=self.max_batches)

        try:
            self._initialize_extractor()
            tick = 0
            while self.max_batches is None or tick < self.max_batches:
                context = self._context.for_batch(tick)
                tick += 1
                batch = self.extractor.extract(context, self.extract_config, self._extract_log)
                if batch is None:
                    log.info("pipeline.source_exhausted", pipeline=self.name, ticks=tick - 1)
                    break

                output, result = self._timed_transform(context, batch)
                stage_results.append(result)
                if result.error is not None:
                    errors.append(result.error)
                    if self.stop_on_error or self._transformer_failed:
                        log.error(
                            "pipeline.stopped_on_error",
                            pipeline=self.name,
                            stage=result.stage_name,
                            error=str(result.error),
                        )
                        break
                    continue

                batches += 1
                total_rows += len(output)
                self._metrics.record_batch(len(output))
                if on_batch is not None:
                    on_batch(output)

                if self.batch_interval_s and (self.max_batches is None or tick < self.max_batches):
                    time.sleep(self.batch_interval_s)

        except Exception as exc:
            errors.append(exc)
            log.exception("pipeline.unhandled_error", pipeline=self.name, error=str(exc))
        finally:
            errors.extend(self._shutdown())

        elapsed = time.perf_counter() - t0
        status = StageStatus.SUCCESS if not errors else StageStatus.FAILED

        log.info(
            "pipeline.complete",
            pipeline=self.name,
            status=status,
            elapsed_s=f"{elapsed:.3f}",
            batches=batches,
            rows=total_rows,
        )
        return PipelineResult(
            pipeline_name=self.name,
            status=status,
            elapsed_s=elapsed,
            batches_processed=batches,
            total_rows=total_rows,
            stage_results=stage_results,
            errors=errors,
            metrics=self._metrics.snapshot(),
        )

    def replace_transformer(
        self, transformer: Transformer, config: StageConfig | None = None
    ) -> None:
        """Swap in a new stage; the current one is cleaned up first if it ran."""
        if self._transformer_ready:
            self._transformer_ready = False
            self.transformer.cleanup(self._context, self.transform_config, self._transform_log)
            log.info("stage.cleanup", pipeline=self.name, stage=self.transformer.name, reason="replaced")
        self.transformer = transformer
        self._transformer_failed = False
        if config is not None:
            self.transform_config = config
        log.info("stage.replaced", pipeline=self.name, stage=transformer.name)

    # ------------------------------------------------------------------ #
    #  Internal helpers                                                     #
    # ------------------------------------------------------------------ #

    @property
    def _extract_log(self) -> StageLogger:
        return get_stage_logger(self.name, "extract", self.extractor.name)

    @property
    def _transform_log(self) -> StageLogger:
        return get_stage_logger(self.name, "transform", self.transformer.name)

    def _initialize_extractor(self) -> None:
        if self._extractor_ready:
            return
        self.extractor.initialize(self._context, self.extract_config, self._extract_log)
        self._extractor_ready = True
        log.info("stage.initialize", pipeline=self.name, stage=self.extractor.name)

    def _initialize_transformer(self) -> None:
        if self._transformer_ready:
            return
        try:
            self.transformer.initialize(self._context, self.transform_config, self._transform_log)
        except Exception:
            self._transformer_failed = True
            raise
        self._transformer_ready = True
        log.info("stage.initialize", pipeline=self.name, stage=self.transformer.name)

    def _timed_transform(
        self, context: StageContext, batch: Batch
    ) -> tuple[Batch, StageResult]:
        t0 = time.perf_counter()
        rows_in = len(batch)
        name = self.transformer.name
        try:
            self._initialize_transformer()
            output = self.transformer.transform(
                context, batch, self.transform_config, self._transform_log
            )
            if not isinstance(output, Batch):
                raise TypeError(
                    f"{name}.transform returned {type(output).__name__}, expected Batch"
                )
        except Exception as exc:
            elapsed = time.perf_counter() - t0
            self._metrics.record_stage(name, rows_in, 0, elapsed, error=exc)
            log.warning("transformer.error", pipeline=self.name, stage=name, error=str(exc))
            return batch, StageResult(
                stage_name=name,
                status=StageStatus.FAILED,
                elapsed_s=elapsed,
                records_in=rows_in,
                error=exc,
            )
        elapsed = time.perf_counter() - t0
        self._metrics.record_stage(name, rows_in, len(output), elapsed)
        return output, StageResult(
            stage_name=name,
            status=StageStatus.SUCCESS,
            elapsed_s=elapsed,
            records_in=rows_in,
            records_out=len(output),
        )

    def _shutdown(self) -> list[Exception]:
        errors: list[Exception] = []
        self._closed = True
        if self._transformer_ready:
            self._transformer_ready = False
            try:
                self.transformer.cleanup(self._context, self.transform_config, self._transform_log)
                log.info("stage.cleanup", pipeline=self.name, stage=self.transformer.name)
            except Exception as exc:
                errors.append(exc)
                log.exception("stage.cleanup_failed", pipeline=self.name, stage=self.transformer.name)
        if self._extractor_ready:
            self._extractor_ready = False
            try:
                self.extractor.cleanup(self._context, self.extract_config, self._extract_log)
                log.info("stage.cleanup", pipeline=self.name, stage=self.extractor.name)
            except Exception as exc:
                errors.append(exc)
                log.exception("stage.cleanup_failed", pipeline=self.name, stage=self.extractor.name)
        return errors

    def __repr__(self) -> str:
        return (
            f"Pipeline(name={self.name!r}, "
            f"extractor={self.extractor.name!r}, "
            f"transformer={self.transformer.name!r})"
        )
