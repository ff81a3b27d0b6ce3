"""Stage registry — stage classes self-register and are resolved by name or kind."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

from pipestage.core.configs import (
    ExtractKind,
    StageConfig,
    TransformKind,
    UserTransformConfig,
    expect_config,
    extract_configs,
    transform_configs,
)

if TYPE_CHECKING:
    from pipestage.core.base import Extractor, Transformer


class StageRegistry:
    """A name → class registry for pipeline stages.

    Stages register themselves with::

        @registry.transformer("my_stage")
        class MyStage(SimpleByteTransformer):
            ...

    Built-in stages also claim the kind they implement::

        @registry.transformer("json", kind=TransformKind.JSON)
        class JsonTransformer(TextTransformer):
            ...

    A ``user-stage`` config names its class through ``class_name``, which
    is looked up here first and imported as a dotted path otherwise.
    """

    def __init__(self) -> None:
        self._extractors: dict[str, type] = {}
        self._transformers: dict[str, type] = {}
        self._extract_kinds: dict[ExtractKind, type] = {}
        self._transform_kinds: dict[TransformKind, type] = {}

    # ------------------------------------------------------------------ #
    #  Registration decorators                                             #
    # ------------------------------------------------------------------ #

    def extractor(self, name: str, kind: ExtractKind | str | None = None) -> Any:
        def _decorator(cls: type) -> type:
            self._extractors[name] = cls
            if kind is not None:
                self._extract_kinds[extract_configs.kind(kind)] = cls
            cls._registry_name = name  # type: ignore[attr-defined]
            return cls
        return _decorator

    def transformer(self, name: str, kind: TransformKind | str | None = None) -> Any:
        def _decorator(cls: type) -> type:
            tag = transform_configs.kind(kind) if kind is not None else None
            if tag == TransformKind.USER:
                raise ValueError("user-stage classes are resolved by class_name, not by kind")
            self._transformers[name] = cls
            if tag is not None:
                self._transform_kinds[tag] = cls
            cls._registry_name = name  # type: ignore[attr-defined]
            return cls
        return _decorator

    # ------------------------------------------------------------------ #
    #  Lookup                                                              #
    # ------------------------------------------------------------------ #

    def get_extractor(self, name: str) -> type:
        try:
            return self._extractors[name]
        except KeyError:
            available = list(self._extractors)
            raise KeyError(f"Unknown extractor '{name}'. Available: {available}") from None

    def get_transformer(self, name: str) -> type:
        try:
            return self._transformers[name]
        except KeyError:
            available = list(self._transformers)
            raise KeyError(f"Unknown transformer '{name}'. Available: {available}") from None

    def resolve_extractor(self, kind: ExtractKind | str) -> type[Extractor]:
        from pipestage.core.base import Extractor

        _load_builtins()
        tag = extract_configs.kind(kind)
        try:
            cls = self._extract_kinds[tag]
        except KeyError:
            raise KeyError(f"No extractor implements kind '{tag}'") from None
        return _check_stage(cls, Extractor)

    def resolve_transformer(
        self, kind: TransformKind | str, config: StageConfig
    ) -> type[Transformer]:
        """Return the Transformer class that runs a stage of ``kind``."""
        from pipestage.core.base import Transformer

        _load_builtins()
        tag = transform_configs.kind(kind)
        if tag == TransformKind.USER:
            user_config = expect_config(config, UserTransformConfig)
            cls = self._user_class(user_config.class_name)
            for bound_kind, bound_cls in self._transform_kinds.items():
                if cls is bound_cls:
                    raise TypeError(
                        f"'{user_config.class_name}' implements kind '{bound_kind}' and "
                        f"cannot run as a user-stage; use kind '{bound_kind}' instead"
                    )
        else:
            try:
                cls = self._transform_kinds[tag]
            except KeyError:
                raise KeyError(f"No transformer implements kind '{tag}'") from None
        return _check_stage(cls, Transformer)

    def _user_class(self, class_name: str) -> type:
        if class_name in self._transformers:
            return self._transformers[class_name]
        module_name, sep, attr = class_name.partition(":")
        if not sep:
            module_name, _, attr = class_name.rpartition(".")
        if not module_name or not attr:
            available = list(self._transformers)
            raise KeyError(
                f"Unknown transformer '{class_name}'. Use a registered name or a "
                f"dotted import path. Registered: {available}"
            )
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise KeyError(f"Cannot import module '{module_name}' for '{class_name}': {exc}") from exc
        try:
            return getattr(module, attr)  # type: ignore[no-any-return]
        except AttributeError:
            raise KeyError(f"Module '{module_name}' has no attribute '{attr}'") from None

    # ------------------------------------------------------------------ #
    #  Introspection                                                       #
    # ------------------------------------------------------------------ #

    def list_extractors(self) -> list[str]:
        return sorted(self._extractors)

    def list_transformers(self) -> list[str]:
        return sorted(self._transformers)

    def all_stages(self) -> dict[str, list[str]]:
        return {
            "extractors": self.list_extractors(),
            "transformers": self.list_transformers(),
        }


def _check_stage(cls: Any, base: type) -> Any:
    if not (isinstance(cls, type) and issubclass(cls, base)):
        raise TypeError(f"{cls!r} is not a {base.__name__} subclass")
    return cls


def _load_builtins() -> None:
    import pipestage.plugins  # noqa: F401, PLC0415


registry = StageRegistry()
