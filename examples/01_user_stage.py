"""Example 01 — A user-supplied byte stage.

Scenario
--------
A team wants to mask e-mail addresses in raw log lines before they leave
the ingest tier.  The stage is theirs, not a built-in, so it is written as
a ``SimpleByteTransformer`` and selected through a ``user-stage`` config:

  1. Emit a fixed block of log lines (test-lines extractor)
  2. Replace every address with a mask taken from the stage's own config
  3. Print each output batch and the run summary

Run this script from the project root::

    python -m examples.01_user_stage
"""

from __future__ import annotations

import re
from collections.abc import Iterator

import pyarrow as pa

from pipestage.core.base import SimpleByteTransformer, StageContext
from pipestage.core.configs import UserTransformConfig
from pipestage.core.pipeline import Pipeline
from pipestage.core.registry import registry
from pipestage.models.batch import Batch
from pipestage.observability.logging import StageLogger, configure_logging

LOG_LINES = """\
2024-05-01T10:00:00Z login ok user=alice@example.com
2024-05-01T10:00:03Z login failed user=bob@example.org
2024-05-01T10:00:09Z logout user=alice@example.com
"""

_EMAIL = re.compile(rb"[\w.+-]+@[\w-]+\.[\w.]+")


# --------------------------------------------------------------------------- #
#  1. The stage                                                                #
# --------------------------------------------------------------------------- #


@registry.transformer("mask_emails")
class MaskEmails(SimpleByteTransformer):
    """Replace e-mail addresses with ``config["mask"]``."""

    def __init__(self) -> None:
        self._mask = b"***"

    def initialize_user(
        self, context: StageContext, config: UserTransformConfig, logger: StageLogger
    ) -> None:
        self._mask = str(config.config.get("mask", "***")).encode()
        logger.info("mask_emails.ready", mask=self._mask.decode())

    def transform_user(
        self,
        context: StageContext,
        records: Iterator[bytes | None],
        config: UserTransformConfig,
        logger: StageLogger,
    ) -> Batch:
        masked = [None if r is None else _EMAIL.sub(self._mask, r) for r in records]
        return Batch.single_column("line", masked, type=pa.binary())


# --------------------------------------------------------------------------- #
#  2. Wire the pipeline                                                        #
# --------------------------------------------------------------------------- #


def main() -> None:
    configure_logging(level="INFO", fmt="console")

    pipeline = Pipeline.from_definition(
        {
            "name": "mask-logs",
            "extract": {"kind": "test-lines", "config": {"value": LOG_LINES}},
            "transform": {
                "kind": "user-stage",
                "config": {"class_name": "mask_emails", "config": {"mask": "<redacted>"}},
            },
            "max_batches": 2,
        }
    )

    def show(batch: Batch) -> None:
        for line in batch.column("line"):
            print(f"  {line.decode()}")

    result = pipeline.run(on_batch=show)
    print(result.summary())


if __name__ == "__main__":
    main()
