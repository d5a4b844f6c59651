"""Upstream data clients."""
from .supabase import SupabaseClient
from .nys_legislation import NYSLegislationClient

__all__ = [
    "SupabaseClient",
    "NYSLegislationClient",
]
