"""Tests for the first-column record adapter."""

from __future__ import annotations

import pyarrow as pa
import pytest

from pipestage.core import adapter
from pipestage.core.errors import InvalidSchemaError, RecordDecodeError
from pipestage.models.batch import Batch


class TestToTextRecords:
    def test_text_column_in_row_order(self, text_batch: Batch) -> None:
        assert list(adapter.to_text_records(text_batch)) == ["a", "b", "c"]

    def test_bytes_column_decoded(self, bytes_batch: Batch) -> None:
        assert list(adapter.to_text_records(bytes_batch)) == ["héllo", "plain", "日本語"]

    def test_nulls_pass_through(self) -> None:
        b = Batch.single_column("line", ["x", None, "y"])
        assert list(adapter.to_text_records(b)) == ["x", None, "y"]

    def test_is_single_pass(self, text_batch: Batch) -> None:
        records = adapter.to_text_records(text_batch)
        assert list(records) == ["a", "b", "c"]
        assert list(records) == []

    def test_invalid_utf8_is_strict(self) -> None:
        b = Batch.single_column("payload", [b"ok", b"\xff\xfe"], type=pa.binary())
        records = adapter.to_text_records(b)
        assert next(records) == "ok"
        with pytest.raises(RecordDecodeError) as info:
            next(records)
        assert info.value.row == 1

    def test_multi_chunk_column(self) -> None:
        chunked = pa.chunked_array([["a", "b"], ["c"]], type=pa.string())
        table = pa.Table.from_arrays([chunked], names=["line"])
        assert list(adapter.to_text_records(Batch(table=table))) == ["a", "b", "c"]


class TestToByteRecords:
    def test_bytes_column_unchanged(self, bytes_batch: Batch) -> None:
        assert list(adapter.to_byte_records(bytes_batch)) == bytes_batch.column("payload")

    def test_text_column_encoded_utf8(self) -> None:
        b = Batch.single_column("line", ["é", "x"])
        assert list(adapter.to_byte_records(b)) == [b"\xc3\xa9", b"x"]

    def test_utf8_round_trip_per_row(self, bytes_batch: Batch) -> None:
        original = bytes_batch.column("payload")
        as_text = Batch.single_column("line", list(adapter.to_text_records(bytes_batch)))
        assert list(adapter.to_byte_records(as_text)) == original


class TestSchemaValidation:
    def test_empty_schema_rejected(self) -> None:
        with pytest.raises(InvalidSchemaError):
            adapter.to_byte_records(Batch.empty())

    def test_non_text_first_column_rejected(self, struct_batch: Batch) -> None:
        with pytest.raises(InvalidSchemaError) as info:
            adapter.to_byte_records(struct_batch)
        assert info.value.field is not None
        assert info.value.field.name == "obj"

    def test_json_first_column_rejected(self, json_batch: Batch) -> None:
        with pytest.raises(InvalidSchemaError):
            adapter.to_text_records(json_batch)

    def test_numeric_first_column_rejected(self) -> None:
        b = Batch.single_column("n", [1, 2], type=pa.int64())
        with pytest.raises(InvalidSchemaError, match="text or raw bytes"):
            adapter.to_text_records(b)

    def test_fails_before_any_row_is_read(self, struct_batch: Batch, monkeypatch) -> None:
        def _no_reads(batch: Batch):
            raise AssertionError("rows were read")

        monkeypatch.setattr(adapter, "_iter_first_column", _no_reads)
        with pytest.raises(InvalidSchemaError):
            adapter.to_byte_records(struct_batch)

    def test_only_first_column_matters(self, text_batch: Batch) -> None:
        assert adapter.record_field(text_batch.schema)[0].name == "line"


class TestSingleRecordHelpers:
    def test_round_trip(self) -> None:
        for text in ["", "ascii", "ünïcödé", "😀 emoji"]:
            assert adapter.bytes_to_text(adapter.text_to_bytes(text)) == text

    def test_invalid_bytes_reports_offset(self) -> None:
        with pytest.raises(RecordDecodeError, match="byte 1"):
            adapter.bytes_to_text(b"a\x80b", row=4)
