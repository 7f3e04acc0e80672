from typing import Literal, Optional

from pydantic import BaseModel, Field


class PageIndexingRequest(BaseModel):
    page_type: Literal["article", "category", "home"] = "home"
    article_id: Optional[str] = None
    category_slug: Optional[str] = None
    action: Literal["update", "delete"] = "update"
    force: bool = Field(
        default=False,
        description="Submit even if the article was indexed within the dedupe window.",
    )


class SectionIndexingRequest(BaseModel):
    """Single-item or batch indexing of one content section.

    ``mode="single"`` needs the matching id field; without it the request
    falls back to a batch of the newest items.
    """

    mode: Literal["single", "batch"] = "single"
    force: bool = False


class WebStoryIndexingRequest(SectionIndexingRequest):
    story_id: Optional[str] = None


class ArticleSectionIndexingRequest(SectionIndexingRequest):
    article_id: Optional[str] = None


class VideoIndexingRequest(SectionIndexingRequest):
    video_id: Optional[str] = None
