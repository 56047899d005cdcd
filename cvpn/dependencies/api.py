"""
FastAPI dependency that protects the /vpn routes behind operator tokens.

Routes declare the scope they need:

    operator: Operator = Security(get_current_operator, scopes=[WRITE_SCOPE])
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, SecurityScopes

from cvpn.services.auth import SCOPES, Operator, read_operator_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", scopes=SCOPES)


def get_current_operator(
    security_scopes: SecurityScopes,
    token: str = Depends(oauth2_scheme),
) -> Operator:
    """
    Resolve the Bearer token to an operator holding every required scope.

    401 for a missing, expired or forged token; 403 when the token is valid
    but lacks a scope the route asks for.
    """
    authenticate = "Bearer"
    if security_scopes.scopes:
        authenticate = f'Bearer scope="{security_scopes.scope_str}"'
    operator = read_operator_token(token)
    if operator is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": authenticate},
        )
    missing = [scope for scope in security_scopes.scopes if not operator.can(scope)]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Operator '{operator.name}' lacks scope(s): {', '.join(missing)}",
            headers={"WWW-Authenticate": authenticate},
        )
    return operator
