"""Provider dispatch for CivicGPT."""
from .providers import ProviderDispatcher, ProviderError

__all__ = ["ProviderDispatcher", "ProviderError"]
