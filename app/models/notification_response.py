from typing import Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    success: bool
    message: str
    recipients: int = 0
    id: Optional[str] = None
    skipped: bool = False
    reason: Optional[str] = None
