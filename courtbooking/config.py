"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("courtbooking.config")


class Settings(BaseSettings):
    # Backend: "memory" (local dev, tests) or "supabase"
    store_backend: str = "memory"

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    request_timeout: float = 15.0

    # Storage buckets
    payment_proof_bucket: str = "payment-proofs"
    avatar_bucket: str = "profile-picture"

    # Display
    currency: str = "IDR"

    # Grid sessions idle longer than this (seconds) are dropped
    grid_session_idle_timeout: float = 1800.0

    # Admin auth (service automation; admins normally sign in)
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []
        _placeholders = {"https://your-project.supabase.co", "your-anon-key"}

        if self.store_backend not in ("memory", "supabase"):
            raise ValueError(
                f"STORE_BACKEND must be 'memory' or 'supabase', got {self.store_backend!r}."
            )

        if self.store_backend == "supabase":
            if not self.supabase_url or self.supabase_url in _placeholders:
                raise ValueError(
                    "SUPABASE_URL is missing or still a placeholder. "
                    "Set it in .env to use the Supabase backend."
                )
            if not self.supabase_anon_key or self.supabase_anon_key in _placeholders:
                raise ValueError(
                    "SUPABASE_ANON_KEY is missing or still a placeholder. "
                    "Set it in .env to use the Supabase backend."
                )
        else:
            warnings.append(
                "STORE_BACKEND=memory: bookings are kept in process and lost on restart."
            )

        if not self.admin_api_key:
            warnings.append(
                "ADMIN_API_KEY not set. Admin APIs require a signed-in admin user."
            )

        return warnings


settings = Settings()
