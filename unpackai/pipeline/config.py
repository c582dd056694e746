"""
Refresh job configuration schema.

The queue stores job config as opaque JSON. The executor validates it here
before calling the workflow, so a malformed config fails its own job
instead of reaching the external providers.
"""

from enum import Enum
from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field

MAX_RESULTS_LIMIT = 100


class SearchDepth(str, Enum):
    SHALLOW = "shallow"
    MEDIUM = "medium"
    DEEP = "deep"


class PersonalizationLevel(str, Enum):
    BASIC = "basic"
    ADVANCED = "advanced"
    EXPERT = "expert"


class SummarizationStyle(str, Enum):
    CONCISE = "concise"
    DETAILED = "detailed"
    COMPREHENSIVE = "comprehensive"


class RefreshConfig(BaseModel):
    """
    Configuration of a content refresh.

    Field names follow the camelCase JSON used by the web client and the
    workflow; snake_case names are accepted too.
    """

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    kind: Literal["refresh"] = "refresh"
    max_results: int = Field(
        15,
        alias="maxResults",
        ge=1,
        le=MAX_RESULTS_LIMIT,
        description="Maximum number of articles to return",
    )
    search_depth: SearchDepth = Field(SearchDepth.MEDIUM, alias="searchDepth")
    personalization_level: PersonalizationLevel = Field(
        PersonalizationLevel.ADVANCED, alias="personalizationLevel"
    )
    summarization_style: SummarizationStyle = Field(
        SummarizationStyle.DETAILED, alias="summarizationStyle"
    )
    include_images: bool = Field(True, alias="includeImages")
    include_videos: bool = Field(False, alias="includeVideos")

    def to_payload(self) -> Dict[str, Any]:
        """JSON form sent to the workflow and stored on the job."""
        return self.model_dump(by_alias=True, mode="json")


DEFAULT_REFRESH_CONFIG: Dict[str, Any] = RefreshConfig().to_payload()
