from pydantic import BaseModel, Field


class SeoScanRequest(BaseModel):
    fetch_pages: bool = Field(
        default=True,
        description="Fetch each article page to detect redirects, soft 404s and noindex tags.",
    )
