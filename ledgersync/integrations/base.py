from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ledgersync.schemas.sync import RemoteRecord


class ProviderClient(ABC):
    """
    Outbound interface to one accounting provider.

    Implementations raise ProviderUnavailableError for transient failures
    (network, timeouts, 5xx, 429) and ProviderRejectedError when the provider
    refuses a request.
    """

    name: str = ""

    @abstractmethod
    async def fetch_all(self, entity_type: str) -> List[RemoteRecord]:
        """Fetch every record of an entity type"""
        pass

    @abstractmethod
    async def fetch_one(self, entity_type: str, external_id: str) -> Optional[RemoteRecord]:
        """Fetch a single record; None when the provider has no such record"""
        pass

    @abstractmethod
    async def create(self, entity_type: str, payload: Dict[str, Any]) -> RemoteRecord:
        """Create a record and return it with its new external id"""
        pass

    @abstractmethod
    async def update(self, entity_type: str, external_id: str, payload: Dict[str, Any]) -> RemoteRecord:
        """Update an existing record"""
        pass
