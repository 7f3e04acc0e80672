from typing import List, Optional

from pydantic import BaseModel


class PublishedArticle(BaseModel):
    id: str
    title: str
    slug: str


class PublishArticlesResponse(BaseModel):
    success: bool = True
    message: str
    count: int
    articles: List[PublishedArticle] = []


class QueueItemResult(BaseModel):
    success: bool
    story_id: Optional[str] = None
    title: Optional[str] = None
    error: Optional[str] = None


class PublishWebStoriesResponse(BaseModel):
    success: bool = True
    message: str
    published: int
    failed: int
    results: List[QueueItemResult] = []
