"""JSON transformer — turn text records into a single JSON-typed column."""

from __future__ import annotations

import json
from collections.abc import Iterator

import pyarrow as pa

from pipestage.core.base import StageContext, TextTransformer
from pipestage.core.configs import JsonTransformConfig, StageConfig, TransformKind, expect_config
from pipestage.core.errors import RecordDecodeError
from pipestage.core.registry import registry
from pipestage.models.batch import Batch, json_field
from pipestage.observability.logging import StageLogger


@registry.transformer("json", kind=TransformKind.JSON)
class JsonTransformer(TextTransformer):
    """Validate every record as a JSON document and emit it under ``column_name``.

    Null records stay null.  The first record that is not valid JSON fails
    the whole batch.
    """

    def transform_text(
        self,
        context: StageContext,
        records: Iterator[str | None],
        config: StageConfig,
        logger: StageLogger,
    ) -> Batch:
        cfg = expect_config(config, JsonTransformConfig)
        values: list[str | None] = []
        for row, record in enumerate(records):
            if record is not None:
                try:
                    json.loads(record)
                except json.JSONDecodeError as exc:
                    raise RecordDecodeError(f"invalid JSON: {exc.msg}", row=row) from exc
            values.append(record)

        logger.debug("json.transformed", rows=len(values), column=cfg.column_name)
        schema = pa.schema([json_field(cfg.column_name)])
        return Batch.from_rows(((v,) for v in values), schema)
