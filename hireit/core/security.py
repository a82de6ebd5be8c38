from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

TOKEN_PREFIX = "fake-jwt-token-for-"

# Tokens are issued by the account service; this service only reads the subject.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

def create_access_token(data: dict) -> str:
    """
    Placeholder for creating an access token.
    The subject ("sub") is the user's id.
    """
    return f"{TOKEN_PREFIX}{data.get('sub')}"

def decode_access_token(token: str) -> str | None:
    """
    Placeholder for decoding an access token.
    Returns the subject (the user id) if valid, else None.
    """
    if token.startswith(TOKEN_PREFIX):
        return token.replace(TOKEN_PREFIX, "", 1) or None
    return None

async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    """Current identity provider: the authenticated user's id, taken from the bearer token."""
    user_id_from_token = decode_access_token(token)
    if not user_id_from_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id_from_token
