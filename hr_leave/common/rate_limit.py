"""slowapi limiter shared by the routers and wired into the app in main.py."""

from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from hr_leave.config import settings


def user_or_address(request: Request) -> str:
    """Bucket by tenant and user when a bearer token is present, else by client IP.

    The token is only peeked at here; signature checks happen in the auth
    dependency, so a forged token at worst lands in its own bucket.
    """
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        try:
            claims = jwt.get_unverified_claims(header[7:])
        except JWTError:
            claims = {}
        if claims.get("tenant_id") and claims.get("sub"):
            return f"{claims['tenant_id']}:{claims['sub']}"
    return get_remote_address(request)


limiter = Limiter(key_func=user_or_address, default_limits=[settings.RATE_LIMIT_DEFAULT])
