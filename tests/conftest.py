"""Shared pytest fixtures for the pipestage test suite."""

from __future__ import annotations

import pyarrow as pa
import pytest
import structlog

from pipestage.core.base import StageContext
from pipestage.models.batch import Batch, json_field


@pytest.fixture
def context() -> StageContext:
    return StageContext(pipeline_name="test-pipeline", batch_interval_s=0.0)


@pytest.fixture
def logger():
    return structlog.get_logger("tests").bind(pipeline="test-pipeline", phase="transform")


@pytest.fixture
def text_batch() -> Batch:
    """Three text rows in a ``line`` column, plus a trailing int column."""
    schema = pa.schema([pa.field("line", pa.string()), pa.field("n", pa.int64())])
    return Batch.from_rows([("a", 1), ("b", 2), ("c", 3)], schema)


@pytest.fixture
def bytes_batch() -> Batch:
    values = ["héllo".encode(), b"plain", "日本語".encode()]
    return Batch.single_column("payload", values, type=pa.binary())


@pytest.fixture
def struct_batch() -> Batch:
    schema = pa.schema([pa.field("obj", pa.struct([("x", pa.int64())]))])
    return Batch.from_rows([({"x": 1},), ({"x": 2},)], schema)


@pytest.fixture
def json_batch() -> Batch:
    schema = pa.schema([json_field("doc")])
    return Batch.from_rows([('{"a": 1}',), ("[1, 2]",)], schema)
