"""Core stage contracts, configuration dispatch, and the pipeline engine."""

from pipestage.core.errors import (
    ConfigKindMismatchError,
    ConfigParseError,
    ConfigProblem,
    InvalidSchemaError,
    PipestageError,
    RecordDecodeError,
)
from pipestage.core.configs import (
    ConfigRegistry,
    ExtractKind,
    StageConfig,
    TransformKind,
    UserTransformConfig,
    expect_config,
    extract_configs,
    transform_configs,
)
from pipestage.core.base import (
    ByteTransformer,
    Extractor,
    PipelineStage,
    SimpleByteTransformer,
    StageContext,
    StageResult,
    StageStatus,
    TextTransformer,
    Transformer,
)
from pipestage.core.registry import StageRegistry, registry
from pipestage.core.pipeline import Pipeline, PipelineDefinition, PipelineResult

__all__ = [
    "PipestageError",
    "InvalidSchemaError",
    "ConfigParseError",
    "ConfigProblem",
    "ConfigKindMismatchError",
    "RecordDecodeError",
    "ConfigRegistry",
    "StageConfig",
    "TransformKind",
    "ExtractKind",
    "UserTransformConfig",
    "expect_config",
    "transform_configs",
    "extract_configs",
    "PipelineStage",
    "Extractor",
    "Transformer",
    "TextTransformer",
    "ByteTransformer",
    "SimpleByteTransformer",
    "StageContext",
    "StageResult",
    "StageStatus",
    "StageRegistry",
    "registry",
    "Pipeline",
    "PipelineDefinition",
    "PipelineResult",
]
