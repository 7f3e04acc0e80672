from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CategoryRef(BaseModel):
    """Embedded ``categories`` resource returned by PostgREST joins."""

    slug: str
    name: Optional[str] = None
    parent_id: Optional[str] = None


class Category(BaseModel):
    id: str
    slug: str
    name: str = ""
    parent_id: Optional[str] = None
    updated_at: Optional[datetime] = None


class Article(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    slug: str
    title: str = ""
    excerpt: Optional[str] = None
    content: Optional[str] = None
    published: bool = True
    status: Optional[str] = None
    category_id: Optional[str] = None
    category: Optional[CategoryRef] = Field(default=None, alias="categories")
    tags: Optional[List[str]] = None
    image_url: Optional[str] = None
    canonical_url: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    seo_keywords: Optional[List[str]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None


class WebStorySlide(BaseModel):
    image: Optional[str] = None
    text: Optional[str] = None


class WebStory(BaseModel):
    id: str = ""
    slug: str
    title: str = ""
    category: Optional[str] = None
    status: Optional[str] = None
    slides: Optional[List[Optional[WebStorySlide]]] = None
    published_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QueueItem(BaseModel):
    """Row of ``web_stories_queue`` with its embedded story."""

    id: str
    story_id: Optional[str] = None
    priority: int = 0
    scheduled_at: Optional[datetime] = None
    web_stories: Optional[WebStory] = None


class PrivateJob(BaseModel):
    slug: str
    updated_at: Optional[datetime] = None


class HomepageVideo(BaseModel):
    id: str = ""
    title: str = ""
    description: Optional[str] = None
    youtube_url: Optional[str] = None
    category: Optional[str] = None
    display_order: Optional[int] = None
    created_at: Optional[datetime] = None


class LearningPath(BaseModel):
    slug: str
    updated_at: Optional[datetime] = None


class CodeSnippet(BaseModel):
    slug: str
    updated_at: Optional[datetime] = None


class GscConfig(BaseModel):
    """Google Search Console OAuth credentials stored in ``gsc_config``."""

    access_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    refresh_token: Optional[str] = None
