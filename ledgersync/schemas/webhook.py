from typing import List, Optional

from pydantic import BaseModel, Field


class WebhookEntity(BaseModel):
    name: str
    id: str
    operation: str
    last_updated: Optional[str] = None


class WebhookEvent(BaseModel):
    realm_id: str
    event_name: str
    event_id: str
    entities: List[WebhookEntity] = Field(default_factory=list)


class WebhookResult(BaseModel):
    message: str
    events_processed: int = 0
    entities_processed: int = 0
    duplicates_skipped: int = 0
    errors: List[str] = Field(default_factory=list)
