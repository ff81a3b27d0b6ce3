"""Record adapter — reshape a batch's first column into byte or text records.

The byte- and text-level stage variants never see a :class:`Batch`; they
receive the sequence produced here instead.  UTF-8 is the only encoding used
in either direction, and decoding is strict: malformed input raises
:class:`RecordDecodeError` instead of producing replacement characters.

Both ``to_*_records`` functions check the schema eagerly and only then hand
back a lazy, single-pass iterator over the rows.
"""

from __future__ import annotations

from collections.abc import Iterator

import pyarrow as pa

from pipestage.core.errors import InvalidSchemaError, RecordDecodeError
from pipestage.models.batch import Batch, FieldKind, field_kind

ENCODING = "utf-8"

_ACCEPTED = (FieldKind.TEXT, FieldKind.BYTES)


def bytes_to_text(data: bytes, row: int = 0) -> str:
    try:
        return data.decode(ENCODING)
    except UnicodeDecodeError as exc:
        raise RecordDecodeError(
            f"invalid UTF-8 at byte {exc.start}: {exc.reason}", row=row
        ) from exc


def text_to_bytes(text: str) -> bytes:
    return text.encode(ENCODING)


def first_field(schema: pa.Schema) -> pa.Field:
    """Return the first field of ``schema``; an empty schema is rejected."""
    if len(schema) == 0:
        raise InvalidSchemaError("The input batch has no columns")
    return schema.field(0)


def record_field(schema: pa.Schema) -> tuple[pa.Field, FieldKind]:
    """Validate that the first column can be read as byte or text records."""
    f = first_field(schema)
    kind = field_kind(f)
    if kind not in _ACCEPTED:
        raise InvalidSchemaError(
            "The first column of the input batch should be either text or raw bytes, "
            f"got column '{f.name}' of type {f.type} ({kind})",
            field=f,
        )
    return f, kind


def to_byte_records(batch: Batch) -> Iterator[bytes | None]:
    """Return the first column as UTF-8 byte records, one per row."""
    _, kind = record_field(batch.schema)
    return _iter_bytes(batch, kind)


def to_text_records(batch: Batch) -> Iterator[str | None]:
    """Return the first column as text records, one per row."""
    _, kind = record_field(batch.schema)
    return _iter_text(batch, kind)


def _iter_first_column(batch: Batch) -> Iterator[object]:
    for chunk in batch.table.column(0).chunks:
        yield from chunk.to_pylist()


def _iter_bytes(batch: Batch, kind: FieldKind) -> Iterator[bytes | None]:
    for value in _iter_first_column(batch):
        if value is None or kind == FieldKind.BYTES:
            yield value  # type: ignore[misc]
        else:
            yield text_to_bytes(value)  # type: ignore[arg-type]


def _iter_text(batch: Batch, kind: FieldKind) -> Iterator[str | None]:
    for row, value in enumerate(_iter_first_column(batch)):
        if value is None or kind == FieldKind.TEXT:
            yield value  # type: ignore[misc]
        else:
            yield bytes_to_text(value, row=row)  # type: ignore[arg-type]
