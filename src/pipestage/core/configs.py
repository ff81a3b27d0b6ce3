"""Kind-tagged stage configuration — typed JSON decode / encode per stage kind.

A pipeline definition pairs every stage with a kind tag and a JSON object.
Each kind has exactly one config schema (a pydantic model); the registry
looks the schema up and converts in both directions::

    cfg = transform_configs.decode("user-stage", {"class_name": "MyStage", "config": {}})
    doc = transform_configs.encode("user-stage", cfg)

Every config class carries the kind it belongs to, so a config value is a
tagged union over the registered kinds.  Using it under any other kind is a
:class:`ConfigKindMismatchError`.

Adding a stage kind means adding an enum member and one decorated schema;
existing entries never change.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Annotated, Any, ClassVar, Generic, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    StringConstraints,
    ValidationError,
    model_validator,
)

from pipestage.core.errors import ConfigKindMismatchError, ConfigParseError, ConfigProblem

KindT = TypeVar("KindT", bound=StrEnum)
ConfigT = TypeVar("ConfigT", bound="StageConfig")


class TransformKind(StrEnum):
    JSON = "json-stage"
    CSV = "csv-stage"
    USER = "user-stage"


class ExtractKind(StrEnum):
    TEST_LINES = "test-lines"


class StageConfig(BaseModel):
    """Base class for every kind-specific config payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ClassVar[str]


def expect_config(config: StageConfig, config_type: type[ConfigT]) -> ConfigT:
    """Checked extraction of a concrete config from a generic one."""
    if not isinstance(config, config_type):
        raise ConfigKindMismatchError(expected=config_type.kind, actual=_kind_of(config))
    return config


# --------------------------------------------------------------------------- #
#  Registry                                                                    #
# --------------------------------------------------------------------------- #


class ConfigRegistry(Generic[KindT]):
    """A kind → config schema table for one pipeline phase.

    Schemas register themselves with::

        @transform_configs.config(TransformKind.JSON)
        class JsonTransformConfig(StageConfig):
            kind: ClassVar[str] = TransformKind.JSON
            ...

    The table is filled at import time and only read afterwards, so
    ``decode`` and ``encode`` are safe to call from any thread.
    """

    def __init__(self, phase: str, kinds: type[KindT]) -> None:
        self.phase = phase
        self._kinds = kinds
        self._schemas: dict[KindT, type[StageConfig]] = {}

    # ------------------------------------------------------------------ #
    #  Registration                                                        #
    # ------------------------------------------------------------------ #

    def config(self, kind: KindT | str) -> Callable[[type[ConfigT]], type[ConfigT]]:
        def _decorator(cls: type[ConfigT]) -> type[ConfigT]:
            self.register(kind, cls)
            return cls

        return _decorator

    def register(self, kind: KindT | str, schema: type[StageConfig]) -> None:
        tag = self.kind(kind)
        if tag in self._schemas:
            raise ValueError(f"{self.phase} kind '{tag}' is already registered")
        for other, existing in self._schemas.items():
            if existing is schema:
                raise ValueError(
                    f"{schema.__name__} is already registered as {self.phase} kind '{other}'"
                )
        declared = getattr(schema, "kind", None)
        if declared != tag:
            raise ValueError(
                f"{schema.__name__} declares kind {declared!r} but is being registered as '{tag}'"
            )
        self._schemas[tag] = schema

    # ------------------------------------------------------------------ #
    #  Lookup                                                              #
    # ------------------------------------------------------------------ #

    def kind(self, value: KindT | str) -> KindT:
        """Coerce a tag string into this phase's kind enum."""
        try:
            return self._kinds(value)
        except ValueError:
            available = [k.value for k in self._kinds]
            raise KeyError(
                f"Unknown {self.phase} kind '{value}'. Available: {available}"
            ) from None

    def schema_for(self, kind: KindT | str) -> type[StageConfig]:
        tag = self.kind(kind)
        try:
            return self._schemas[tag]
        except KeyError:
            raise KeyError(f"No config schema registered for {self.phase} kind '{tag}'") from None

    def kinds(self) -> list[KindT]:
        return list(self._schemas)

    def missing_kinds(self) -> list[KindT]:
        """Declared kinds that have no schema registered."""
        return [k for k in self._kinds if k not in self._schemas]

    # ------------------------------------------------------------------ #
    #  Decode / encode                                                     #
    # ------------------------------------------------------------------ #

    def decode(self, kind: KindT | str, document: Any) -> StageConfig:
        """Validate a parsed JSON value against the schema for ``kind``."""
        tag = self.kind(kind)
        schema = self.schema_for(tag)
        if not isinstance(document, Mapping):
            raise ConfigParseError(
                tag,
                [
                    ConfigProblem(
                        field="<root>",
                        message="config must be a JSON object",
                        expected="object",
                        actual=_json_type(document),
                    )
                ],
            )
        try:
            return schema.model_validate(dict(document))
        except ValidationError as exc:
            raise ConfigParseError(tag, _problems(exc)) from exc

    def decode_json(self, kind: KindT | str, text: str | bytes) -> StageConfig:
        tag = self.kind(kind)
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigParseError(
                tag,
                [
                    ConfigProblem(
                        field="<root>",
                        message=f"invalid JSON: {exc.msg} at line {exc.lineno} column {exc.colno}",
                    )
                ],
            ) from exc
        return self.decode(tag, document)

    def encode(self, kind: KindT | str, config: StageConfig) -> dict[str, Any]:
        """Dump ``config`` to a JSON object; it must belong to ``kind``."""
        tag = self.kind(kind)
        schema = self.schema_for(tag)
        if not isinstance(config, schema) or config.kind != tag:
            raise ConfigKindMismatchError(expected=tag, actual=_kind_of(config))
        return config.model_dump(mode="json")

    def describe(self) -> dict[str, list[str]]:
        """Return ``{kind: [field, ...]}`` for every registered kind."""
        return {k.value: list(s.model_fields) for k, s in self._schemas.items()}


def _kind_of(config: object) -> str:
    return str(getattr(config, "kind", type(config).__name__))


def _json_type(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


_EXPECTED = {
    "string_type": "string",
    "bool_type": "boolean",
    "dict_type": "object",
    "model_type": "object",
    "list_type": "array",
    "int_type": "integer",
}


def _problems(exc: ValidationError) -> list[ConfigProblem]:
    problems = []
    for err in exc.errors(include_url=False):
        loc = ".".join(str(part) for part in err["loc"]) or "<root>"
        err_type = err["type"]
        if err_type == "missing":
            expected, actual = "required field", "missing"
        elif err_type == "extra_forbidden":
            expected, actual = "no such field", _json_type(err.get("input"))
        else:
            ctx = err.get("ctx") or {}
            expected = str(ctx.get("expected", _EXPECTED.get(err_type, err_type)))
            actual = _json_type(err.get("input"))
        problems.append(
            ConfigProblem(field=loc, message=err["msg"], expected=expected, actual=actual)
        )
    return problems


transform_configs: ConfigRegistry[TransformKind] = ConfigRegistry("transform", TransformKind)
extract_configs: ConfigRegistry[ExtractKind] = ConfigRegistry("extract", ExtractKind)


# --------------------------------------------------------------------------- #
#  Transform-phase schemas                                                     #
# --------------------------------------------------------------------------- #

Char = Annotated[str, StringConstraints(strict=True, min_length=1, max_length=1)]
Name = Annotated[str, StringConstraints(strict=True, min_length=1)]


@transform_configs.config(TransformKind.JSON)
class JsonTransformConfig(StageConfig):
    """Wrap each text record as a JSON document in a single column."""

    kind: ClassVar[str] = TransformKind.JSON

    column_name: Name


class CsvColumnType(StrEnum):
    STRING = "string"
    INT64 = "int64"
    FLOAT64 = "float64"
    BOOL = "bool"
    JSON = "json"


class CsvColumn(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Name
    column_type: CsvColumnType = CsvColumnType.STRING
    skip: StrictBool = False


@transform_configs.config(TransformKind.CSV)
class CsvTransformConfig(StageConfig):
    """Parse each text record as one CSV line.

    All five fields must be present; the four dialect fields may be ``null``
    to use the defaults (``,`` delimiter, ``"`` quote, no escape, no null
    marker).
    """

    kind: ClassVar[str] = TransformKind.CSV

    delimiter: Char | None
    escape: Char | None
    quote: Char | None
    null_string: StrictStr | None
    columns: list[CsvColumn] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_column_names(self) -> CsvTransformConfig:
        names = [c.name for c in self.columns]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate column names: {duplicates}")
        return self


@transform_configs.config(TransformKind.USER)
class UserTransformConfig(StageConfig):
    """Config for an author-supplied stage class.

    ``class_name`` names the stage (a registered name or a dotted import
    path) and ``config`` is the author's own free-form settings object.
    """

    kind: ClassVar[str] = TransformKind.USER

    class_name: Name
    config: dict[str, Any]


# --------------------------------------------------------------------------- #
#  Extract-phase schemas                                                       #
# --------------------------------------------------------------------------- #


@extract_configs.config(ExtractKind.TEST_LINES)
class TestLinesExtractConfig(StageConfig):
    kind: ClassVar[str] = ExtractKind.TEST_LINES

    __test__ = False

    value: StrictStr
