"""FastAPI dependencies that turn the bearer credential into an explicit Actor.

Usage in any protected router:
    from src.cm_gateway.auth.dependencies import get_current_actor

    @router.post("/orders/{order_id}/confirm-delivery")
    async def confirm(actor: Actor = Depends(get_current_actor)):
        ...

Core services never read request state; they receive the Actor as an argument.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.actor import Actor
from src.cm_common.database import get_db_session
from src.cm_common.enums import UserRole
from src.cm_common.errors import AccountDisabledError, InvalidCredentialsError, NotAuthorizedError
from src.cm_gateway.auth.jwt_handler import decode_token
from src.cm_gateway.user.db_models import UserModel

# tokenUrl tells Swagger UI where to get a token (used for the "Authorize" button)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> UserModel:
    """Validate the JWT Bearer token and return the UserModel.

    Raises HTTP 401 if the token is missing, invalid, or expired.
    Raises AccountDisabledError (403) if the user row is deactivated.
    """
    try:
        payload = decode_token(token, expected_type="access")
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    user_id: str | None = payload.get("sub")
    if not user_id:
        raise _CREDENTIALS_EXCEPTION

    result = await db.execute(select(UserModel).where(UserModel.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise _CREDENTIALS_EXCEPTION

    if not user.is_active:
        raise AccountDisabledError()

    return user


async def get_current_actor(
    current_user: UserModel = Depends(get_current_user),
) -> Actor:
    return Actor(user_id=str(current_user.id), role=current_user.role)


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise NotAuthorizedError("Admin access required")
    return actor


async def require_rider(actor: Actor = Depends(get_current_actor)) -> Actor:
    if actor.role != UserRole.RIDER:
        raise NotAuthorizedError("Rider access required")
    return actor
