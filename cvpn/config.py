"""
Application configuration loaded from environment variables.
Uses pydantic-settings so every value can be overridden via a .env file.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # ── State file ───────────────────────────────────────────────────────────
    # Name → record mapping for every managed VPN.  One file per user.
    state_file: Path = Field(default_factory=lambda: Path.home() / ".vpnrc.yml")

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"

    # ── JWT (HTTP surface only) ──────────────────────────────────────────────
    # Secret used to sign/verify JWT tokens.  Change this in production!
    jwt_secret_key: str = "changeme-super-secret-key"
    jwt_algorithm: str = "HS256"
    # Token lifetime in minutes
    jwt_expire_minutes: int = 30

    # ── Operators ────────────────────────────────────────────────────────────
    # Comma-separated "username:password" pairs allowed to drive the API.
    # Passwords may be given as bcrypt hashes ("$2b$...").
    operator_users: str = "admin:secret"
    # Comma-separated operator names limited to read-only access (vpn:read).
    viewer_operators: str = ""

    # ── AWS ──────────────────────────────────────────────────────────────────
    # Leave blank to use the default credential chain (profile, IAM role, …)
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_session_token: str = ""
    # Point at a local emulator (e.g. http://localhost:4566) for development
    aws_endpoint_url: str = ""
    # Virtual private gateway type; "ipsec.1" is the only type EC2 accepts
    vpn_gateway_type: str = "ipsec.1"

    # ── Helpers ───────────────────────────────────────────────────────────────
    def get_operators(self) -> dict[str, str]:
        """Return the operator credential map {username: password}."""
        operators: dict[str, str] = {}
        for entry in self.operator_users.split(","):
            entry = entry.strip()
            if ":" not in entry:
                continue
            username, password = entry.split(":", 1)
            operators[username.strip()] = password.strip()
        return operators

    def get_viewers(self) -> set[str]:
        """Return the names of operators that may only read."""
        return {name.strip() for name in self.viewer_operators.split(",") if name.strip()}


settings = Settings()
