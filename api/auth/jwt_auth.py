# CRITICAL: Set Windows event loop policy FIRST, before any other imports
# This must be the very first thing that happens to fix psycopg compatibility
import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Load environment variables early
from dotenv import load_dotenv

load_dotenv()

# Constants
try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[2]
except NameError:
    BASE_DIR = Path(os.getcwd()).parents[0]

import time

# Standard imports
import jwt
import requests
from fastapi import HTTPException
from jwt.algorithms import RSAAlgorithm

from api.config import settings
from api.utils.debug import print__token_debug

JWKS_TIMEOUT_SECONDS = 5


# ============================================================
# AUTHENTICATION - JWT VERIFICATION
# ============================================================
def _fetch_jwk_key(kid: str):
    """Public key for ``kid`` from the configured JWKS endpoint."""
    try:
        response = requests.get(settings.JWT_JWKS_URL, timeout=JWKS_TIMEOUT_SECONDS)
        response.raise_for_status()
        jwks = response.json()
    except requests.RequestException as e:
        print__token_debug(f"❌ JWKS fetch failed: {e}")
        raise HTTPException(status_code=401, detail="Token verification failed")

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return RSAAlgorithm.from_jwk(key)
    print__token_debug(f"❌ No JWKS key matches kid {kid}")
    raise HTTPException(status_code=401, detail="Invalid token")


def verify_jwt(token: str) -> dict:
    """Verify a bearer token and return its claims; raises HTTPException(401)."""
    token_parts = token.split(".")
    if len(token_parts) != 3 or not token_parts[0] or not token_parts[1]:
        raise HTTPException(status_code=401, detail="Invalid JWT token format")

    try:
        unverified_header = jwt.get_unverified_header(token)
        unverified_payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.DecodeError as e:
        print__token_debug(f"JWT decode error: {e}")
        raise HTTPException(status_code=401, detail="Invalid JWT token format")

    # TEST MODE: unsigned tokens from the test issuer (development/testing only)
    use_test_tokens = os.getenv("USE_TEST_TOKENS", "0") == "1"
    if unverified_payload.get("iss") == settings.TEST_TOKEN_ISSUER:
        if not use_test_tokens:
            print__token_debug("🚫 TEST MODE DISABLED: rejecting test token")
            raise HTTPException(
                status_code=401, detail="Test tokens are not allowed in this environment"
            )
        if settings.JWT_AUDIENCE and unverified_payload.get("aud") != settings.JWT_AUDIENCE:
            raise HTTPException(status_code=401, detail="Invalid test token audience")
        if int(unverified_payload.get("exp", 0)) < time.time():
            raise HTTPException(status_code=401, detail="Test token has expired")
        print__token_debug("🧪 TEST MODE: test token accepted")
        return unverified_payload

    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    try:
        if settings.JWT_JWKS_URL and "kid" in unverified_header:
            key, algorithms = _fetch_jwk_key(unverified_header["kid"]), ["RS256"]
        else:
            if not settings.JWT_SECRET:
                print__token_debug("❌ JWT_SECRET is not configured")
                raise HTTPException(status_code=401, detail="Token verification failed")
            key, algorithms = settings.JWT_SECRET, [settings.JWT_ALGORITHM]
        payload = jwt.decode(
            token,
            key,
            algorithms=algorithms,
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        print__token_debug("Token has expired")
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidAudienceError:
        raise HTTPException(status_code=401, detail="Invalid token audience")
    except jwt.InvalidSignatureError:
        raise HTTPException(status_code=401, detail="Invalid token signature")
    except jwt.InvalidTokenError as e:
        print__token_debug(f"Invalid token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")

    print__token_debug("✅ JWT verified")
    return payload
