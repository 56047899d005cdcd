"""
Operator authentication and authorisation for the HTTP surface.

Operators come from `settings.operator_users`.  Each one is granted scopes:

  vpn:read   list VPNs and read live gateway status
  vpn:write  create, delete and resume VPNs (touches the cloud account)

Names listed in `settings.viewer_operators` only get ``vpn:read``.  The
scopes travel inside the JWT, and the /vpn routes check them per endpoint.
The operator name is written into each created record as ``createdBy``.

The CLI never goes through this module: it runs as the local user and
talks to the state file directly.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from cvpn.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

READ_SCOPE = "vpn:read"
WRITE_SCOPE = "vpn:write"
SCOPES = {
    READ_SCOPE: "List VPNs and read live gateway state.",
    WRITE_SCOPE: "Create, delete and resume VPNs.",
}


class Operator(BaseModel):
    """An authenticated caller and what it may do."""

    name: str
    scopes: list[str]

    def can(self, scope: str) -> bool:
        return scope in self.scopes


def scopes_for(username: str, requested: Optional[list[str]] = None) -> list[str]:
    """
    Scopes *username* is entitled to, narrowed to *requested* when given.

    Requesting a scope the operator does not hold simply leaves it out.
    """
    granted = [READ_SCOPE]
    if username not in settings.get_viewers():
        granted.append(WRITE_SCOPE)
    if requested:
        granted = [scope for scope in granted if scope in requested]
    return granted


# ── Token helpers ─────────────────────────────────────────────────────────────

def issue_operator_token(
    operator: str,
    scopes: list[str],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign a JWT naming *operator* and carrying its granted *scopes*."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expire_minutes)
    )
    payload = {"sub": operator, "scope": " ".join(scopes), "exp": expire}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def read_operator_token(token: str) -> Optional[Operator]:
    """Return the operator named by *token*, or None if it is invalid or expired."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    name = payload.get("sub")
    if not name:
        return None
    return Operator(name=name, scopes=payload.get("scope", "").split())


# ── Credential validation ─────────────────────────────────────────────────────

def verify_operator(username: str, password: str) -> bool:
    """Check *username* / *password* against the configured operators."""
    expected = settings.get_operators().get(username)
    if not expected:
        return False
    if expected.startswith("$2"):
        return pwd_context.verify(password, expected)
    return expected == password
