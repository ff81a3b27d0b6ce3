"""Tests for kind-tagged config decode / encode."""

from __future__ import annotations

from typing import Any, ClassVar

import pytest

from pipestage.core.configs import (
    ConfigRegistry,
    CsvColumnType,
    CsvTransformConfig,
    ExtractKind,
    JsonTransformConfig,
    StageConfig,
    TestLinesExtractConfig,
    TransformKind,
    UserTransformConfig,
    expect_config,
    extract_configs,
    transform_configs,
)
from pipestage.core.errors import ConfigKindMismatchError, ConfigParseError

VALID_DOCUMENTS: dict[TransformKind, dict[str, Any]] = {
    TransformKind.JSON: {"column_name": "doc"},
    TransformKind.CSV: {
        "delimiter": ";",
        "escape": None,
        "quote": "'",
        "null_string": "NULL",
        "columns": [
            {"name": "id", "column_type": "int64"},
            {"name": "label"},
            {"name": "ignored", "skip": True},
        ],
    },
    TransformKind.USER: {"class_name": "MyStage", "config": {"x": 1}},
}


class TestRegistryTable:
    def test_every_transform_kind_has_a_schema(self) -> None:
        assert transform_configs.missing_kinds() == []
        assert set(transform_configs.kinds()) == set(TransformKind)

    def test_every_extract_kind_has_a_schema(self) -> None:
        assert extract_configs.missing_kinds() == []
        assert set(extract_configs.kinds()) == set(ExtractKind)

    def test_every_kind_has_a_valid_document_fixture(self) -> None:
        assert set(VALID_DOCUMENTS) == set(TransformKind)

    def test_schemas_are_distinct(self) -> None:
        schemas = [transform_configs.schema_for(k) for k in TransformKind]
        assert len(set(schemas)) == len(schemas)

    def test_schema_kind_matches_tag(self) -> None:
        for kind in TransformKind:
            assert transform_configs.schema_for(kind).kind == kind

    def test_unknown_kind(self) -> None:
        with pytest.raises(KeyError, match="Available"):
            transform_configs.decode("xml-stage", {})

    def test_describe(self) -> None:
        described = transform_configs.describe()
        assert described["user-stage"] == ["class_name", "config"]


class TestRegistration:
    def _registry(self) -> ConfigRegistry[TransformKind]:
        return ConfigRegistry("transform", TransformKind)

    def test_duplicate_kind_rejected(self) -> None:
        reg = self._registry()
        reg.register(TransformKind.JSON, JsonTransformConfig)

        class OtherJson(StageConfig):
            kind: ClassVar[str] = TransformKind.JSON

        with pytest.raises(ValueError, match="already registered"):
            reg.register(TransformKind.JSON, OtherJson)

    def test_schema_alias_rejected(self) -> None:
        reg = self._registry()
        reg.register(TransformKind.JSON, JsonTransformConfig)
        with pytest.raises(ValueError):
            reg.register(TransformKind.CSV, JsonTransformConfig)

    def test_declared_kind_must_match(self) -> None:
        reg = self._registry()
        with pytest.raises(ValueError, match="declares kind"):
            reg.register(TransformKind.CSV, UserTransformConfig)

    def test_missing_kinds_reported(self) -> None:
        reg = self._registry()
        reg.register(TransformKind.USER, UserTransformConfig)
        assert reg.missing_kinds() == [TransformKind.JSON, TransformKind.CSV]
        with pytest.raises(KeyError, match="No config schema"):
            reg.decode(TransformKind.JSON, {"column_name": "x"})


class TestDecode:
    @pytest.mark.parametrize("kind", list(TransformKind))
    def test_round_trip_is_idempotent(self, kind: TransformKind) -> None:
        decoded = transform_configs.decode(kind, VALID_DOCUMENTS[kind])
        again = transform_configs.decode(kind, transform_configs.encode(kind, decoded))
        assert again == decoded

    def test_accepts_plain_string_tag(self) -> None:
        cfg = transform_configs.decode("json-stage", {"column_name": "doc"})
        assert isinstance(cfg, JsonTransformConfig)
        assert cfg.kind == TransformKind.JSON

    def test_user_stage_fields(self) -> None:
        cfg = transform_configs.decode(
            "user-stage", {"class_name": "MyStage", "config": {"x": 1}}
        )
        assert isinstance(cfg, UserTransformConfig)
        assert cfg.class_name == "MyStage"
        assert cfg.config == {"x": 1}

    def test_user_stage_missing_class_name(self) -> None:
        with pytest.raises(ConfigParseError) as info:
            transform_configs.decode("user-stage", {"config": {"x": 1}})
        assert info.value.kind == "user-stage"
        assert info.value.fields == ["class_name"]
        assert "class_name" in str(info.value)
        assert info.value.problems[0].actual == "missing"

    @pytest.mark.parametrize("kind", list(TransformKind))
    def test_each_required_field_is_required(self, kind: TransformKind) -> None:
        for name in VALID_DOCUMENTS[kind]:
            doc = {k: v for k, v in VALID_DOCUMENTS[kind].items() if k != name}
            with pytest.raises(ConfigParseError) as info:
                transform_configs.decode(kind, doc)
            assert name in info.value.fields

    def test_nullable_field_must_still_be_present(self) -> None:
        doc = dict(VALID_DOCUMENTS[TransformKind.CSV])
        doc["escape"] = None
        cfg = transform_configs.decode(TransformKind.CSV, doc)
        assert isinstance(cfg, CsvTransformConfig)
        assert cfg.escape is None

    def test_wrong_field_type(self) -> None:
        with pytest.raises(ConfigParseError) as info:
            transform_configs.decode("json-stage", {"column_name": 42})
        problem = info.value.problems[0]
        assert problem.field == "column_name"
        assert problem.expected == "string"
        assert problem.actual == "number"

    def test_user_config_must_be_object(self) -> None:
        with pytest.raises(ConfigParseError) as info:
            transform_configs.decode("user-stage", {"class_name": "S", "config": [1, 2]})
        assert info.value.problems[0].actual == "array"

    def test_extra_fields_rejected(self) -> None:
        with pytest.raises(ConfigParseError) as info:
            transform_configs.decode("json-stage", {"column_name": "doc", "colour": "red"})
        assert info.value.fields == ["colour"]

    def test_non_object_document(self) -> None:
        with pytest.raises(ConfigParseError) as info:
            transform_configs.decode("json-stage", ["column_name"])
        assert info.value.problems[0].expected == "object"
        assert info.value.problems[0].actual == "array"

    def test_nested_problem_path(self) -> None:
        doc = dict(VALID_DOCUMENTS[TransformKind.CSV])
        doc["columns"] = [{"name": "id", "column_type": "decimal"}]
        with pytest.raises(ConfigParseError) as info:
            transform_configs.decode("csv-stage", doc)
        assert info.value.fields == ["columns.0.column_type"]

    def test_csv_single_char_dialect(self) -> None:
        doc = dict(VALID_DOCUMENTS[TransformKind.CSV])
        doc["delimiter"] = "||"
        with pytest.raises(ConfigParseError) as info:
            transform_configs.decode("csv-stage", doc)
        assert info.value.fields == ["delimiter"]

    def test_csv_duplicate_columns(self) -> None:
        doc = dict(VALID_DOCUMENTS[TransformKind.CSV])
        doc["columns"] = [{"name": "a"}, {"name": "a"}]
        with pytest.raises(ConfigParseError, match="Duplicate"):
            transform_configs.decode("csv-stage", doc)

    def test_csv_column_defaults(self) -> None:
        cfg = transform_configs.decode("csv-stage", VALID_DOCUMENTS[TransformKind.CSV])
        assert isinstance(cfg, CsvTransformConfig)
        assert cfg.columns[1].column_type == CsvColumnType.STRING
        assert cfg.columns[2].skip is True

    def test_decode_json_text(self) -> None:
        cfg = extract_configs.decode_json("test-lines", '{"value": "a\\nb"}')
        assert isinstance(cfg, TestLinesExtractConfig)
        assert cfg.value == "a\nb"

    def test_decode_json_invalid_text(self) -> None:
        with pytest.raises(ConfigParseError, match="invalid JSON"):
            extract_configs.decode_json("test-lines", "{value: }")


class TestEncode:
    def test_encode_is_plain_json(self) -> None:
        cfg = transform_configs.decode("csv-stage", VALID_DOCUMENTS[TransformKind.CSV])
        doc = transform_configs.encode("csv-stage", cfg)
        assert doc["columns"][0] == {"name": "id", "column_type": "int64", "skip": False}
        assert doc["escape"] is None

    def test_encode_under_wrong_kind(self) -> None:
        cfg = transform_configs.decode("json-stage", {"column_name": "doc"})
        with pytest.raises(ConfigKindMismatchError) as info:
            transform_configs.encode("user-stage", cfg)
        assert info.value.expected == "user-stage"
        assert info.value.actual == "json-stage"

    @pytest.mark.parametrize("decoded_as", list(TransformKind))
    def test_no_cross_kind_encoding(self, decoded_as: TransformKind) -> None:
        cfg = transform_configs.decode(decoded_as, VALID_DOCUMENTS[decoded_as])
        for other in TransformKind:
            if other == decoded_as:
                continue
            with pytest.raises(ConfigKindMismatchError):
                transform_configs.encode(other, cfg)

    def test_extract_config_cannot_be_encoded_as_transform(self) -> None:
        cfg = extract_configs.decode("test-lines", {"value": "x"})
        with pytest.raises(ConfigKindMismatchError):
            transform_configs.encode("user-stage", cfg)


class TestExpectConfig:
    def test_matching_kind(self) -> None:
        cfg = transform_configs.decode("user-stage", VALID_DOCUMENTS[TransformKind.USER])
        assert expect_config(cfg, UserTransformConfig) is cfg

    def test_mismatched_kind(self) -> None:
        cfg = transform_configs.decode("json-stage", {"column_name": "doc"})
        with pytest.raises(ConfigKindMismatchError, match="user-stage"):
            expect_config(cfg, UserTransformConfig)

    def test_configs_are_immutable(self) -> None:
        cfg = transform_configs.decode("json-stage", {"column_name": "doc"})
        with pytest.raises(Exception):
            cfg.column_name = "other"  # type: ignore[misc]
