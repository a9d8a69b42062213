class LedgerSyncError(Exception):
    """Base exception for all synchronization errors."""
    pass

class ProviderError(LedgerSyncError):
    """Base exception for accounting provider errors."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code

class ProviderUnavailableError(ProviderError):
    """Raised on network failures, timeouts and 5xx/429 responses. Retryable."""
    pass

class ProviderRejectedError(ProviderError):
    """Raised when the provider rejects a request (4xx / validation). Terminal for the record."""
    pass

class ProviderNotConfiguredError(ProviderError):
    """Raised when no client is registered for a provider."""
    pass

class DuplicateMappingError(LedgerSyncError):
    """Raised when a mapping already exists for the internal or external id."""

    def __init__(self, provider: str, entity_type: str, internal_id: str = None, external_id: str = None):
        super().__init__(
            f"Mapping already exists for {provider}/{entity_type} "
            f"(internal_id={internal_id}, external_id={external_id})"
        )
        self.provider = provider
        self.entity_type = entity_type
        self.internal_id = internal_id
        self.external_id = external_id

class InvalidSignatureError(LedgerSyncError):
    """Raised when a webhook signature does not verify."""
    pass

class InvalidPayloadError(LedgerSyncError):
    """Raised when a webhook payload is malformed."""
    pass

class RecommendationNotFoundError(LedgerSyncError):
    """Raised when a recommendation is no longer current."""
    pass

class ScheduleNotFoundError(LedgerSyncError):
    """Raised when no schedule configuration exists for a provider."""
    pass
