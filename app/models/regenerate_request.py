from typing import Literal, Optional

from pydantic import BaseModel

SitemapType = Literal["main", "web3", "upsc", "tools", "webstories", "videos", "news", "all"]


class RegenerateRequest(BaseModel):
    sitemap_type: SitemapType = "all"
    article_id: Optional[str] = None
    submit_to_search_engines: bool = True
