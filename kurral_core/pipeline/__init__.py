from kurral_core.pipeline.core import Pipeline, PipelineContext, Step
from kurral_core.pipeline.errors import PipelineExecutionError, PipelineViolation
from kurral_core.pipeline.orchestrator import ContentPipeline, OutcomeStatus, PipelineOutcome
from kurral_core.pipeline.comments import CommentPipeline

__all__ = [
    "Pipeline",
    "PipelineContext",
    "Step",
    "PipelineExecutionError",
    "PipelineViolation",
    "ContentPipeline",
    "CommentPipeline",
    "OutcomeStatus",
    "PipelineOutcome",
]
