"""
Content Pipeline Boundary.

The search, analysis, personalization and summarization steps run outside
this process (an N8n workflow). This package holds the typed job config and
the executors the worker pool calls once per job.
"""

from unpackai.pipeline.config import (
    DEFAULT_REFRESH_CONFIG,
    PersonalizationLevel,
    RefreshConfig,
    SearchDepth,
    SummarizationStyle,
)
from unpackai.pipeline.executor import (
    KindDispatchExecutor,
    PipelineExecutor,
    WebhookPipelineExecutor,
    create_executor,
)

__all__ = [
    "DEFAULT_REFRESH_CONFIG",
    "PersonalizationLevel",
    "RefreshConfig",
    "SearchDepth",
    "SummarizationStyle",
    "KindDispatchExecutor",
    "PipelineExecutor",
    "WebhookPipelineExecutor",
    "create_executor",
]
