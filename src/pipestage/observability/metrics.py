"""Pipeline metrics — in-process counters and timings per stage.

Each ``Pipeline`` owns one ``PipelineMetrics``.  Counters are guarded by a
lock so a snapshot can be taken from another thread while batches run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock


@dataclass
class StageMetric:
    """Per-stage accumulated metrics."""

    name: str
    invocations: int = 0
    rows_in: int = 0
    rows_out: int = 0
    errors: int = 0
    total_elapsed_s: float = 0.0
    last_error: str | None = None

    @property
    def avg_elapsed_s(self) -> float:
        if self.invocations == 0:
            return 0.0
        return self.total_elapsed_s / self.invocations

    @property
    def throughput_rps(self) -> float:
        """Rows produced per second across all invocations."""
        if self.total_elapsed_s == 0.0:
            return 0.0
        return self.rows_out / self.total_elapsed_s

    @property
    def error_rate(self) -> float:
        """Fraction of invocations that failed."""
        if self.invocations == 0:
            return 0.0
        return self.errors / self.invocations


class PipelineMetrics:
    """Thread-safe accumulator for a single pipeline run's metrics."""

    def __init__(self, pipeline_name: str) -> None:
        self.pipeline_name = pipeline_name
        self._lock = Lock()
        self._stages: dict[str, StageMetric] = {}
        self._batches: int = 0
        self._total_rows: int = 0
        self._start_time: float = time.perf_counter()

    # ------------------------------------------------------------------ #
    #  Recording                                                           #
    # ------------------------------------------------------------------ #

    def record_batch(self, row_count: int) -> None:
        with self._lock:
            self._batches += 1
            self._total_rows += row_count

    def record_stage(
        self,
        stage_name: str,
        rows_in: int,
        rows_out: int,
        elapsed_s: float,
        error: BaseException | None = None,
    ) -> None:
        """Add one stage invocation; ``error`` is the exception that failed it."""
        with self._lock:
            m = self._stages.setdefault(stage_name, StageMetric(name=stage_name))
            m.invocations += 1
            m.rows_in += rows_in
            m.rows_out += rows_out
            m.total_elapsed_s += elapsed_s
            if error is not None:
                m.errors += 1
                m.last_error = f"{type(error).__name__}: {error}"

    # ------------------------------------------------------------------ #
    #  Querying                                                            #
    # ------------------------------------------------------------------ #

    @property
    def batches(self) -> int:
        return self._batches

    @property
    def total_rows(self) -> int:
        return self._total_rows

    @property
    def elapsed_s(self) -> float:
        return time.perf_counter() - self._start_time

    def stage(self, name: str) -> StageMetric | None:
        return self._stages.get(name)

    def all_stages(self) -> list[StageMetric]:
        return list(self._stages.values())

    def snapshot(self) -> dict[str, object]:
        """Return a serialisable metrics snapshot."""
        with self._lock:
            return {
                "pipeline": self.pipeline_name,
                "elapsed_s": round(self.elapsed_s, 4),
                "batches": self._batches,
                "total_rows": self._total_rows,
                "stages": {
                    name: {
                        "invocations": m.invocations,
                        "rows_in": m.rows_in,
                        "rows_out": m.rows_out,
                        "errors": m.errors,
                        "error_rate": round(m.error_rate, 4),
                        "last_error": m.last_error,
                        "avg_elapsed_s": round(m.avg_elapsed_s, 6),
                        "throughput_rps": round(m.throughput_rps, 2),
                    }
                    for name, m in self._stages.items()
                },
            }
