from .external_mapping import ExternalMapping
from .local_record import LocalRecord
from .webhook import ProcessedWebhookEntity

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'ExternalMapping',
    'LocalRecord',
    'ProcessedWebhookEntity',
]
