"""CSV transformer — parse text records as CSV lines into typed columns.

Each record is one CSV line.  The config's column list gives the name and
type of every field in order; columns marked ``skip`` are parsed but not
emitted.  A null record yields a row of nulls.  Parsing is done by pandas
with every cell read as a string, then each column is cast by pyarrow to
its declared type.
"""

from __future__ import annotations

import io
import json
from collections.abc import Iterator

import pandas as pd
import pyarrow as pa

from pipestage.core.base import StageContext, TextTransformer
from pipestage.core.configs import (
    CsvColumn,
    CsvColumnType,
    CsvTransformConfig,
    StageConfig,
    TransformKind,
    expect_config,
)
from pipestage.core.errors import RecordDecodeError
from pipestage.core.registry import registry
from pipestage.models.batch import Batch, json_field
from pipestage.observability.logging import StageLogger

DEFAULT_DELIMITER = ","
DEFAULT_QUOTE = '"'

_ARROW_TYPES: dict[CsvColumnType, pa.DataType] = {
    CsvColumnType.STRING: pa.string(),
    CsvColumnType.INT64: pa.int64(),
    CsvColumnType.FLOAT64: pa.float64(),
    CsvColumnType.BOOL: pa.bool_(),
}


def column_field(column: CsvColumn) -> pa.Field:
    if column.column_type == CsvColumnType.JSON:
        return json_field(column.name)
    return pa.field(column.name, _ARROW_TYPES[column.column_type])


@registry.transformer("csv", kind=TransformKind.CSV)
class CsvTransformer(TextTransformer):
    """Parse one CSV line per record into the configured columns."""

    def transform_text(
        self,
        context: StageContext,
        records: Iterator[str | None],
        config: StageConfig,
        logger: StageLogger,
    ) -> Batch:
        cfg = expect_config(config, CsvTransformConfig)
        kept = [c for c in cfg.columns if not c.skip]
        schema = pa.schema([column_field(c) for c in kept])

        rows = list(records)
        if not rows:
            return Batch.empty(schema)

        # Null records become all-null rows at their original position.
        present = [i for i, r in enumerate(rows) if r is not None]
        if present:
            frame = self._read([rows[i] for i in present], cfg)
        else:
            frame = pd.DataFrame(columns=[c.name for c in cfg.columns], dtype=object)
        frame.index = pd.Index(present)
        frame = frame.reindex(range(len(rows)))

        arrays = [self._convert(frame[c.name], c) for c in kept]
        logger.debug("csv.transformed", rows=len(frame), columns=len(kept))
        return Batch(table=pa.Table.from_arrays(arrays, schema=schema))

    @staticmethod
    def _read(lines: list[str], cfg: CsvTransformConfig) -> pd.DataFrame:
        try:
            frame = pd.read_csv(
                io.StringIO("\n".join(lines)),
                sep=cfg.delimiter or DEFAULT_DELIMITER,
                quotechar=cfg.quote or DEFAULT_QUOTE,
                escapechar=cfg.escape,
                header=None,
                names=[c.name for c in cfg.columns],
                index_col=False,
                dtype=str,
                keep_default_na=False,
                na_values=[cfg.null_string] if cfg.null_string is not None else None,
                skip_blank_lines=False,
            )
        except pd.errors.ParserError as exc:
            raise RecordDecodeError(f"malformed CSV: {exc}") from exc
        if len(frame) != len(lines):
            raise RecordDecodeError(
                f"malformed CSV: {len(lines)} records parsed into {len(frame)} rows"
            )
        return frame

    @staticmethod
    def _convert(series: pd.Series, column: CsvColumn) -> pa.Array:
        strings = pa.array(series, type=pa.string(), from_pandas=True)
        if column.column_type == CsvColumnType.STRING:
            return strings
        if column.column_type == CsvColumnType.JSON:
            for row, value in enumerate(strings.to_pylist()):
                if value is None:
                    continue
                try:
                    json.loads(value)
                except json.JSONDecodeError as exc:
                    raise RecordDecodeError(
                        f"column '{column.name}': invalid JSON: {exc.msg}", row=row
                    ) from exc
            return strings
        try:
            return strings.cast(_ARROW_TYPES[column.column_type])
        except (pa.ArrowInvalid, pa.ArrowNotImplementedError) as exc:
            raise RecordDecodeError(
                f"column '{column.name}' cannot be read as {column.column_type}: {exc}"
            ) from exc
