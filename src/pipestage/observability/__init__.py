"""Observability — structured logging and metrics."""

from pipestage.observability.logging import configure_logging, get_logger, get_stage_logger
from pipestage.observability.metrics import PipelineMetrics, StageMetric

__all__ = [
    "configure_logging",
    "get_logger",
    "get_stage_logger",
    "PipelineMetrics",
    "StageMetric",
]
