"""
Shared API dependencies.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from splitledger.core.errors import StoreAccessError
from splitledger.core.security import decode_access_token
from splitledger.db.session import get_db
from splitledger.models.user import User
from splitledger.services import ledger_store

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the authenticated user from a Bearer JWT whose subject is the user id."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"}
    )
    if credentials is None:
        raise unauthorized

    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise unauthorized

    try:
        user = ledger_store.fetch_user(db, payload["sub"])
    except StoreAccessError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication store unavailable"
        )
    if not user or not user.is_active:
        raise unauthorized
    return user
