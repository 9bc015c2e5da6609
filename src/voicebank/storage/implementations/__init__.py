"""Storage provider implementations."""

from .supabase import SupabaseStorageProvider
from .tos import TOSStorageProvider

__all__ = ["SupabaseStorageProvider", "TOSStorageProvider"]
