"""
Access Token Validation

- Access tokens are issued by the identity provider and signed with a shared secret (HS256)
- Backend verifies signature, expiry and audience on every request
- User id, email and role come from token claims, not the database
"""
import logging
from typing import Any, Dict, Optional
from jose import jwt
from fastapi import HTTPException
from app.config import settings

logger = logging.getLogger(__name__)


def verify_token(
    token: str,
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
    audience: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Verify an access token and return its claims

    Raises:
        HTTPException: 401 for expired, malformed or wrongly signed tokens
    """
    secret = secret or settings.jwt_secret
    algorithm = algorithm or settings.jwt_algorithm
    audience = audience if audience is not None else settings.jwt_audience

    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            audience=audience or None,
            options={
                "verify_signature": True,
                "verify_aud": bool(audience),
                "verify_exp": True,
            },
        )
        logger.debug(f"Token validation successful. Claims keys: {list(claims.keys())}")
        return claims

    except jwt.ExpiredSignatureError:
        logger.error("Token has expired")
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.JWTClaimsError as e:
        logger.error(f"Token claims validation failed: {str(e)}")
        raise HTTPException(status_code=401, detail=f"Token claims validation failed: {str(e)}")
    except jwt.JWTError as e:
        logger.error(f"JWT validation error: {str(e)}")
        raise HTTPException(status_code=401, detail=f"Token validation failed: {str(e)}")


def role_from_claims(claims: Dict[str, Any]) -> str:
    """'admin' when app_metadata.role or role says so, else 'user'"""
    app_metadata = claims.get("app_metadata") or {}
    role = app_metadata.get("role") if isinstance(app_metadata, dict) else None
    role = role or claims.get("user_role") or claims.get("role")
    return "admin" if str(role or "").lower() == "admin" else "user"
