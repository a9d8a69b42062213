# ledgersync/models/webhook.py
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func

from ledgersync.database import Base


class ProcessedWebhookEntity(Base):
    """Entity changes from provider webhooks that have already been dispatched."""
    __tablename__ = "processed_webhook_entities"

    id = Column(Integer, primary_key=True)
    idempotency_key = Column(String(64), nullable=False, unique=True, index=True)

    realm_id = Column(String, nullable=False)
    event_id = Column(String, nullable=False)
    entity_name = Column(String, nullable=True)
    entity_id = Column(String, nullable=True)
    operation = Column(String, nullable=True)

    processed_at = Column(DateTime(timezone=True), server_default=func.now())
