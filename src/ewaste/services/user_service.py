"""User registration and login.

Learn: Registration inserts the user and points the sensor's bin at it in
a single transaction, so a failed bin lookup never leaves an orphan user
behind. Emails are compared case-insensitively: both registration and
login go through normalize_email() before touching the database.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ewaste.auth.jwt import create_access_token
from ewaste.auth.password import hash_password, verify_password
from ewaste.config import Settings
from ewaste.db.models import User
from ewaste.errors import (
    ConflictError,
    InvalidCredentialsError,
    UnknownSensorError,
    UserNotFoundError,
)
from ewaste.services.bin_service import BinService

logger = structlog.get_logger()


def normalize_email(email: str) -> str:
    """Canonical form used for storage and lookup."""
    return email.strip().lower()


class UserService:
    """Business logic for bin owners: registration, login, lookup."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings
        self.bins = BinService(db)

    async def get_by_email(self, email: str) -> User | None:
        """Find a user by email, whatever its case."""
        result = await self.db.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalars().first()

    async def register(
        self, *, sensor_id: str, name: str, email: str, password: str
    ) -> User:
        """Create a user and make it the owner of the sensor's bin.

        Raises ConflictError for a taken email and UnknownSensorError when
        no bin carries sensor_id. Neither leaves a row behind.
        """
        email = normalize_email(email)
        if await self.get_by_email(email):
            raise ConflictError(f"{email} is already registered")

        bin_ = await self.bins.find_by_sensor_id(sensor_id)
        if bin_ is None:
            raise UnknownSensorError(sensor_id)

        user = User(
            name=name,
            email=email,
            sensor_id=sensor_id,
            password_hash=hash_password(password),
        )
        self.db.add(user)
        try:
            await self.db.flush()  # assigns user.id
            await self.bins.assign_user(sensor_id, user.id, commit=False)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(f"{email} is already registered")
        await self.db.refresh(user)

        logger.info(
            "ewaste.user.registered",
            user_id=str(user.id),
            sensor_id=sensor_id,
            bin_id=str(bin_.id),
        )
        return user

    async def login(
        self, *, email: str, password: str, messaging_token: str | None
    ) -> tuple[User, str]:
        """Verify credentials, refresh the device token, sign a JWT.

        The messaging token is replaced on every login, so the owner's
        most recent device receives push alerts.
        """
        user = await self.get_by_email(email)
        if user is None:
            raise UserNotFoundError()

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        token = create_access_token(user.public_fields(), self.settings)

        user.messaging_token = messaging_token
        await self.db.commit()
        await self.db.refresh(user)

        logger.info("ewaste.user.logged_in", user_id=str(user.id))
        return user, token
