# holidayhouse/core/security.py

import hmac
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from jose import jwt, JWTError

from holidayhouse.core.config import settings


# --------------------------------------
# Access tokens
# --------------------------------------
# Tokens are minted by the identity service (and by scripts/tests); the
# booking API only needs to verify them.

def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.utcnow()
    to_encode.update(
        {
            "iat": now,
            "exp": now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)),
            "type": "access",
        }
    )
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate an *access* token.
    Used by get_current_user.
    """
    payload = jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
    )

    if payload.get("type") != "access":
        raise JWTError("Invalid token type")

    if "user_id" not in payload:
        raise JWTError("Missing user_id in token")

    return payload


# --------------------------------------
# Booking manage tokens
# --------------------------------------

def generate_manage_token() -> str:
    return secrets.token_hex(24)


def tokens_match(token_a: Optional[str], token_b: Optional[str]) -> bool:
    if not token_a or not token_b:
        return False
    return hmac.compare_digest(token_a.encode(), token_b.encode())
