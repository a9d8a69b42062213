from .base import ProviderClient
from .registry import ProviderRegistry

__all__ = ["ProviderClient", "ProviderRegistry"]
