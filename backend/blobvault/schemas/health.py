"""Health probe response schema."""
from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    checks: dict[str, str]
    failed: list[str]
    errors: dict[str, str]
    version: str
