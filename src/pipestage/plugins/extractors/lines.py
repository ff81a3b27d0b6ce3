"""Fixed-content extractor for tests and demos.

Emits the same batch on every tick: the configured text split into lines,
one UTF-8 byte record per line in a single ``bytes`` column.
"""

from __future__ import annotations

import re

import pyarrow as pa

from pipestage.core.adapter import text_to_bytes
from pipestage.core.base import Extractor, StageContext
from pipestage.core.configs import ExtractKind, StageConfig, TestLinesExtractConfig, expect_config
from pipestage.core.registry import registry
from pipestage.models.batch import Batch
from pipestage.observability.logging import StageLogger

COLUMN_NAME = "bytes"

_LINE_BREAK = re.compile(r"\r?\n")


def split_lines(value: str) -> list[str]:
    """Split on ``\\n`` / ``\\r\\n``, dropping trailing empty lines."""
    lines = _LINE_BREAK.split(value)
    while len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return lines


@registry.extractor("test_lines", kind=ExtractKind.TEST_LINES)
class TestLinesExtractor(Extractor):
    """Produce the same fixed batch of lines every tick."""

    __test__ = False

    def __init__(self) -> None:
        self._batch: Batch | None = None

    def initialize(self, context: StageContext, config: StageConfig, logger: StageLogger) -> None:
        self._batch = self._build(config)
        logger.info("test_lines.initialized", rows=len(self._batch))

    def extract(self, context: StageContext, config: StageConfig, logger: StageLogger) -> Batch:
        if self._batch is None:
            self._batch = self._build(config)
        return self._batch

    @staticmethod
    def _build(config: StageConfig) -> Batch:
        cfg = expect_config(config, TestLinesExtractConfig)
        records = [text_to_bytes(line) for line in split_lines(cfg.value)]
        return Batch.single_column(COLUMN_NAME, records, type=pa.binary())
