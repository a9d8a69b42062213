from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Alert(BaseModel):
    kind: str
    provider: Optional[str] = None
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    raised_at: datetime


class HealthCheckResult(BaseModel):
    name: str
    healthy: bool
    detail: Optional[str] = None
