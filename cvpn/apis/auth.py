"""
Auth router — exposes the /auth/token login endpoint for operators.

Uses the OAuth2 "password" grant so the client sends
  Content-Type: application/x-www-form-urlencoded
  username=<operator>&password=<pass>[&scope=vpn:read vpn:write]

and receives a bearer token carrying the scopes the operator was granted.
Omitting ``scope`` asks for everything the operator is entitled to.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel

from cvpn.config import settings
from cvpn.services import auth as auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    scope: str  # space-separated, as in RFC 6749 §5.1
    expires_in: int  # seconds


@router.post(
    "/token",
    response_model=TokenResponse,
    summary="Obtain an operator access token",
)
def login(form_data: OAuth2PasswordRequestForm = Depends()) -> TokenResponse:
    """Validate operator credentials and issue a scoped JWT."""
    if not auth_service.verify_operator(form_data.username, form_data.password):
        logger.warning("Rejected login for operator '%s'", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    scopes = auth_service.scopes_for(form_data.username, form_data.scopes)
    if not scopes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"None of the requested scopes are granted to '{form_data.username}'",
        )
    logger.info("Operator '%s' logged in with scopes %s", form_data.username, scopes)
    return TokenResponse(
        access_token=auth_service.issue_operator_token(form_data.username, scopes),
        scope=" ".join(scopes),
        expires_in=settings.jwt_expire_minutes * 60,
    )
