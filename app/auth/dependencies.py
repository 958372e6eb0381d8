"""
Authentication Dependencies
FastAPI dependencies for bearer-token authentication

- Frontend sends the identity provider's access token in the Authorization header
- Backend verifies the token on each API request
- Stateless: user info comes from token claims, no database lookup
"""
import logging
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.auth.jwt_verifier import verify_token, role_from_claims
from app.models.user import User, UserRole


logger = logging.getLogger(__name__)

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    """
    Extract and validate user from the bearer token

    Raises:
        HTTPException: 401 if the token is invalid or has no subject
    """
    if not credentials:
        logger.warning("No credentials provided by HTTPBearer dependency")
        raise HTTPException(status_code=401, detail="No Authorization header provided")

    claims = verify_token(credentials.credentials)

    user_id = claims.get("sub")
    if not user_id:
        logger.error("Access token missing user identifier (sub)")
        raise HTTPException(status_code=401, detail="Access token missing user identifier (sub)")

    user_metadata = claims.get("user_metadata") or {}
    user = User(
        id=str(user_id),
        email=claims.get("email"),
        name=user_metadata.get("full_name") if isinstance(user_metadata, dict) else None,
        role=UserRole(role_from_claims(claims)),
    )
    logger.debug(f"Authenticated user: id={user.id}, role={user.role.value}")
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Allow only users whose token carries the admin role"""
    if not current_user.is_admin:
        logger.warning(f"Access denied for user {current_user.id}: admin role required")
        raise HTTPException(
            status_code=403,
            detail="Access denied. Required role: admin",
        )
    return current_user
