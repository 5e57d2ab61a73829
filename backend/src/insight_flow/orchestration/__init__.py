"""Orchestration package - stages, pipeline, fallbacks and tracing."""

from insight_flow.orchestration.fallbacks import FallbackEmitter, GENERATION_ERROR_RESPONSE
from insight_flow.orchestration.filter_expression import build_filter_expression
from insight_flow.orchestration.pipeline import FlowOutcome, FlowState, StagePipeline
from insight_flow.orchestration.stages import (
    CompleteStage,
    ExtractFiltersStage,
    GenerateStage,
    PreprocessStage,
    RetrieveStage,
    Stage,
    StageIds,
    Topics,
)
from insight_flow.orchestration.tracing import StageTracer

__all__ = [
    "CompleteStage",
    "ExtractFiltersStage",
    "FallbackEmitter",
    "FlowOutcome",
    "FlowState",
    "GENERATION_ERROR_RESPONSE",
    "GenerateStage",
    "PreprocessStage",
    "RetrieveStage",
    "Stage",
    "StageIds",
    "StagePipeline",
    "StageTracer",
    "Topics",
    "build_filter_expression",
]
