from supabase import create_client, Client
from thisisme.config import settings


class SupabaseClient:
    """Process-wide Supabase clients. Sessions are our own JWTs, so RLS never sees an end user."""

    _anon_client: Client = None
    _service_client: Client = None

    @classmethod
    def get_anon_client(cls) -> Client:
        if cls._anon_client is None:
            cls._anon_client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._anon_client

    @classmethod
    def get_api_client(cls) -> Client:
        """Service-role client when a key is configured (local setups fall back to the anon key)."""
        if not settings.supabase_service_role_key:
            return cls.get_anon_client()
        if cls._service_client is None:
            cls._service_client = create_client(settings.supabase_url, settings.supabase_service_role_key)
        return cls._service_client


def get_supabase() -> Client:
    return SupabaseClient.get_api_client()
