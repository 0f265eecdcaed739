"""JWT helpers for calling admin endpoints without a UI login."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from ..exceptions import AuthenticationError


def mint_service_token(user_id: str, email: str, secret: str, role: str = "admin",
                       ttl_minutes: int = 60, now: Optional[datetime] = None) -> str:
    """Sign an HS256 token shaped like a Supabase access token.

    The backend reads the application role from ``user_metadata.role``;
    the top-level ``role`` stays ``authenticated`` as Supabase issues it.
    """
    if not secret:
        raise AuthenticationError("JWT secret is required to mint a service token")

    issued = now or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "role": "authenticated",
        "user_metadata": {"role": role},
        "iat": issued,
        "exp": issued + timedelta(minutes=ttl_minutes),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_service_token(token: str, secret: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.PyJWTError as e:
        raise AuthenticationError(f"Invalid token: {e}")
