from typing import Dict, List, Optional

from pydantic import BaseModel


class SitemapResult(BaseModel):
    status: str
    url_count: int = 0
    error: Optional[str] = None


class RegenerateResponse(BaseModel):
    success: bool
    message: str
    sitemaps: Dict[str, SitemapResult]
    submitted: List[str] = []
