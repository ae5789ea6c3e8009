from pydantic import BaseModel


class SupabaseConfig(BaseModel):
    """Configuration for the Supabase REST client."""

    url: str = "http://localhost:54321"
    anon_key: str = ""
    timeout_seconds: float = 30.0
    max_connections: int = 20
    max_keepalive_connections: int = 10
    max_retries: int = 3
