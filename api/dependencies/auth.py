"""
MODULE_DESCRIPTION: Authentication Dependencies - JWT Token Verification for FastAPI

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

FastAPI dependencies that turn the Authorization header into a user identity.

    get_current_user        strict: raises HTTPException(401) on any failure and
                            returns the decoded claims
    get_optional_user_id    lenient: returns the "sub" claim or None; the
                            pipeline turns None into an Unauthenticated outcome

Authentication Flow:
    1. Extract Authorization header from incoming request
    2. Validate header format (must be "Bearer <token>")
    3. Extract and trim the JWT token string
    4. Call verify_jwt() to validate signature and claims
    5. Return decoded claims (or the opaque "sub" user id)

Tokens are never logged.
"""

from typing import Optional

from fastapi import Header, HTTPException

from api.auth.jwt_auth import verify_jwt
from api.utils.debug import print__token_debug


def get_current_user(authorization: str = Header(None)) -> dict:
    """Extract and verify the bearer token; raises HTTPException(401) on failure.

    Example:
        @router.get("/usage")
        async def usage(user: dict = Depends(get_current_user)):
            return {"user": user["sub"]}
    """
    if not authorization:
        print__token_debug("❌ AUTH ERROR: No authorization header provided")
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    if not authorization.startswith("Bearer "):
        print__token_debug("❌ AUTH ERROR: Invalid authorization header format")
        raise HTTPException(
            status_code=401,
            detail="Invalid Authorization header format. Expected 'Bearer <token>'",
        )

    auth_parts = authorization.split(" ", 1)
    if len(auth_parts) != 2 or not auth_parts[1].strip():
        print__token_debug("❌ AUTH ERROR: Malformed authorization header")
        raise HTTPException(status_code=401, detail="Invalid Authorization header format")

    claims = verify_jwt(auth_parts[1].strip())
    if not claims.get("sub"):
        raise HTTPException(status_code=401, detail="Token has no subject")
    print__token_debug("✅ AUTH: user authenticated")
    return claims


def get_optional_user_id(authorization: str = Header(None)) -> Optional[str]:
    """User id from a valid token, or None when the header is missing or invalid."""
    try:
        return str(get_current_user(authorization)["sub"])
    except HTTPException as he:
        print__token_debug(f"🔓 AUTH: no verified user ({he.detail})")
        return None
