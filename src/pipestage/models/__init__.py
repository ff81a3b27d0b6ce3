"""Typed data models for the batches flowing between stages."""

from pipestage.models.batch import (
    JSON_LOGICAL_TYPE,
    LOGICAL_TYPE_KEY,
    Batch,
    FieldKind,
    field_kind,
    json_field,
)

__all__ = [
    "Batch",
    "FieldKind",
    "field_kind",
    "json_field",
    "JSON_LOGICAL_TYPE",
    "LOGICAL_TYPE_KEY",
]
