from typing import List, Optional

from pydantic import BaseModel


class IndexingResponse(BaseModel):
    success: bool
    message: str
    urls: List[str] = []
    total_urls: int = 0
    mode: Optional[str] = None
    main_url: Optional[str] = None
    skipped: bool = False
