"""User domain service: register, login, refresh.

Registration inserts the user row and its accounts row in one transaction,
so every user has exactly one balance account from the start.
"""

import logging

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    UsernameExistsError,
)
from src.cm_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.cm_gateway.auth.password import hash_password, verify_password
from src.cm_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)

_CREATE_ACCOUNT_SQL = text(
    "INSERT INTO accounts (user_id, pending_balance, available_balance) "
    "VALUES (:user_id, 0, 0)"
)


class UserService:
    """Stateless service — instantiate once, reuse across requests."""

    async def register(
        self,
        db: AsyncSession,
        username: str,
        email: str,
        password: str,
        role: str,
        full_name: str = "",
        phone: str | None = None,
    ) -> UserModel:
        # DB UNIQUE constraints are the final guard; these give friendly errors
        result = await db.execute(select(UserModel).where(UserModel.username == username))
        if result.scalar_one_or_none() is not None:
            raise UsernameExistsError()

        result = await db.execute(select(UserModel).where(UserModel.email == email))
        if result.scalar_one_or_none() is not None:
            raise EmailExistsError()

        try:
            user = UserModel(
                username=username,
                email=email,
                full_name=full_name,
                phone=phone,
                role=role,
                password_hash=hash_password(password),
                is_active=True,
            )
            db.add(user)
            await db.flush()  # Get user.id without committing
            await db.execute(_CREATE_ACCOUNT_SQL, {"user_id": str(user.id)})
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await db.refresh(user)  # load server-side defaults (created_at)
        logger.info("Registered %s user %s", role, user.id)
        return user

    async def login(
        self,
        db: AsyncSession,
        username: str,
        password: str,
    ) -> tuple[UserModel, str, str]:
        """Authenticate and return (user, access_token, refresh_token).

        "User not found" and "wrong password" both raise InvalidCredentialsError
        so usernames cannot be enumerated.
        """
        result = await db.execute(select(UserModel).where(UserModel.username == username))
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountDisabledError()

        return (
            user,
            create_access_token(str(user.id), user.role),
            create_refresh_token(str(user.id), user.role),
        )

    async def refresh(self, db: AsyncSession, refresh_token: str) -> str:
        """Issue a new access token carrying the user's current role."""
        payload = decode_token(refresh_token, expected_type="refresh")
        result = await db.execute(select(UserModel).where(UserModel.id == payload["sub"]))
        user = result.scalar_one_or_none()
        if user is None:
            raise InvalidRefreshTokenError()
        if not user.is_active:
            raise AccountDisabledError()
        return create_access_token(str(user.id), user.role)
