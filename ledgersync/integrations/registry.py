import logging
from typing import Dict, List

from ledgersync.core.exceptions import ProviderNotConfiguredError
from ledgersync.integrations.base import ProviderClient

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Name -> ProviderClient lookup shared by the executor and the scheduler."""

    def __init__(self):
        self.providers: Dict[str, ProviderClient] = {}

    def register_provider(self, name: str, client: ProviderClient):
        self.providers[name] = client
        logger.info(f"Registered provider client: {name}")

    def get(self, name: str) -> ProviderClient:
        try:
            return self.providers[name]
        except KeyError:
            raise ProviderNotConfiguredError(f"No client configured for provider '{name}'") from None

    def names(self) -> List[str]:
        return list(self.providers)

    def __contains__(self, name: str) -> bool:
        return name in self.providers
