from pydantic import BaseModel


class SeoScanResponse(BaseModel):
    success: bool = True
    message: str
    total_issues: int
    critical: int
    warnings: int
    info: int
    auto_fixed: int
