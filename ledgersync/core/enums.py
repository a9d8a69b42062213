"""
Shared enums and constants used across the application.
"""

from enum import Enum


class Provider(str, Enum):
    QUICKBOOKS = "quickbooks"
    GOOGLE_CALENDAR = "google_calendar"


class EntityType(str, Enum):
    """Internal entity types that take part in synchronization"""
    CUSTOMER = "customer"
    PRODUCT = "product"
    INVOICE = "invoice"


class SyncStatus(str, Enum):
    """Sync status values for mappings and local records."""
    PENDING = "pending"      # Local change not yet pushed
    SYNCED = "synced"        # Local data matches the provider
    ERROR = "error"          # Last sync attempt failed (see sync_error)
    DELETED = "deleted"      # Removed on the provider side; kept for audit


class SyncDirection(str, Enum):
    PULL = "pull"
    PUSH = "push"
    BIDIRECTIONAL = "bidirectional"


class WebhookOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MERGE = "merge"
    VOID = "void"
    EMAILED = "emailed"


class SchedulePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ScheduleState(str, Enum):
    DISABLED = "disabled"
    SCHEDULED = "scheduled"
    RUNNING = "running"


class RecommendationType(str, Enum):
    INTERVAL = "interval"
    TIMING = "timing"
    PERFORMANCE = "performance"
    COST_OPTIMIZATION = "cost_optimization"


class AlertKind(str, Enum):
    SYNC_JOB_FAILED = "sync_job_failed"
    HIGH_FAILURE_RATE = "high_failure_rate"
    SYNC_STALLED = "sync_stalled"
    DUPLICATE_MAPPING = "duplicate_mapping"
    API_ERROR = "api_error"


# QuickBooks entity names -> internal entity types
QUICKBOOKS_ENTITY_TYPES = {
    "customer": EntityType.CUSTOMER,
    "item": EntityType.PRODUCT,
    "invoice": EntityType.INVOICE,
}
