"""Durable storage and authentication backed by Supabase."""

from .supabase import SupabaseStorage, SupabaseAuth, AuthFailed, connect

__all__ = ["SupabaseStorage", "SupabaseAuth", "AuthFailed", "connect"]
