from typing import Optional

from pydantic import BaseModel, model_validator


class NotificationRequest(BaseModel):
    article_id: Optional[str] = None
    is_test: bool = False

    @model_validator(mode="after")
    def _require_article(self) -> "NotificationRequest":
        if not self.is_test and not self.article_id:
            raise ValueError("article_id is required unless is_test is true")
        return self
