"""Batch — the immutable columnar container passed between pipeline stages."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import pandas as pd
import pyarrow as pa

LOGICAL_TYPE_KEY = b"pipestage.logical_type"
JSON_LOGICAL_TYPE = b"json"


class FieldKind(StrEnum):
    """Coarse classification of a schema field as seen by the record adapter."""

    TEXT = "text"
    BYTES = "bytes"
    JSON = "json"
    OTHER = "other"


def json_field(name: str, nullable: bool = True) -> pa.Field:
    """A string-backed field tagged as holding JSON documents."""
    return pa.field(
        name,
        pa.string(),
        nullable=nullable,
        metadata={LOGICAL_TYPE_KEY: JSON_LOGICAL_TYPE},
    )


def field_kind(f: pa.Field) -> FieldKind:
    metadata = f.metadata or {}
    if metadata.get(LOGICAL_TYPE_KEY) == JSON_LOGICAL_TYPE:
        return FieldKind.JSON
    if pa.types.is_string(f.type) or pa.types.is_large_string(f.type):
        return FieldKind.TEXT
    if pa.types.is_binary(f.type) or pa.types.is_large_binary(f.type):
        return FieldKind.BYTES
    if pa.types.is_nested(f.type):
        return FieldKind.JSON
    return FieldKind.OTHER


@dataclass(frozen=True)
class Batch:
    """One bounded unit of rows flowing through a pipeline.

    Wraps a ``pyarrow.Table`` so rows, schema, nullability and per-field
    metadata travel together.  The table is immutable: stages build a new
    ``Batch`` instead of editing the one they were given.
    """

    table: pa.Table
    metadata: Mapping[str, object] = field(default_factory=dict)

    # ------------------------------------------------------------------ #
    #  Constructors                                                        #
    # ------------------------------------------------------------------ #

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[Sequence[Any]],
        schema: pa.Schema,
        metadata: Mapping[str, object] | None = None,
    ) -> Batch:
        """Build a batch from fixed-arity row tuples matching ``schema``."""
        materialised = [tuple(r) for r in rows]
        for i, row in enumerate(materialised):
            if len(row) != len(schema):
                raise ValueError(
                    f"Row {i} has {len(row)} values, schema has {len(schema)} fields"
                )
        columns = list(zip(*materialised)) if materialised else [() for _ in schema]
        arrays = [pa.array(list(col), type=f.type) for col, f in zip(columns, schema)]
        table = pa.Table.from_arrays(arrays, schema=schema)
        return cls(table=table, metadata=dict(metadata or {}))

    @classmethod
    def single_column(
        cls,
        name: str,
        values: Iterable[Any],
        type: pa.DataType = pa.string(),  # noqa: A002
        nullable: bool = True,
        metadata: Mapping[str, object] | None = None,
    ) -> Batch:
        f = pa.field(name, type, nullable=nullable)
        return cls.from_rows(((v,) for v in values), pa.schema([f]), metadata)

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        schema: pa.Schema | None = None,
        metadata: Mapping[str, object] | None = None,
    ) -> Batch:
        table = pa.Table.from_pandas(df, schema=schema, preserve_index=False)
        return cls(table=table, metadata=dict(metadata or {}))

    @classmethod
    def empty(cls, schema: pa.Schema | None = None) -> Batch:
        return cls(table=(schema or pa.schema([])).empty_table())

    # ------------------------------------------------------------------ #
    #  Schema helpers                                                      #
    # ------------------------------------------------------------------ #

    @property
    def schema(self) -> pa.Schema:
        return self.table.schema

    @property
    def field_names(self) -> list[str]:
        return list(self.table.schema.names)

    @property
    def num_rows(self) -> int:
        return self.table.num_rows

    # ------------------------------------------------------------------ #
    #  Row / column access                                                 #
    # ------------------------------------------------------------------ #

    def column(self, name: str) -> list[Any]:
        if name not in self.table.schema.names:
            raise KeyError(f"Column '{name}' not found. Available: {self.field_names}")
        return self.table.column(name).to_pylist()

    def rows(self) -> Iterator[tuple[Any, ...]]:
        """Yield rows as tuples, in order."""
        columns = [c.to_pylist() for c in self.table.columns]
        yield from zip(*columns)

    def to_dataframe(self) -> pd.DataFrame:
        return self.table.to_pandas()

    def with_metadata(self, **extra: object) -> Batch:
        return Batch(table=self.table, metadata={**self.metadata, **extra})

    # ------------------------------------------------------------------ #
    #  Dunder helpers                                                      #
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        return self.table.num_rows

    def __repr__(self) -> str:
        return (
            f"Batch("
            f"rows={self.table.num_rows}, "
            f"fields={self.field_names}, "
            f"metadata_keys={list(self.metadata.keys())})"
        )
