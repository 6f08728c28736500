"""Authentication service for business logic."""

from typing import Tuple

from common.constants import MIN_PASSWORD_LENGTH
from common.logging_config import get_logger
from webapp.auth import create_access_token, decode_access_token, hash_password, verify_password
from webapp.config import Settings
from webapp.domain import User
from webapp.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    UserAlreadyExistsError,
    ValidationError,
)
from webapp.repositories.base import UserRepository
from webapp.utils import generate_uuid, normalize_email, utc_now

logger = get_logger(__name__)


class AuthService:
    def __init__(self, user_repo: UserRepository, settings: Settings):
        self.user_repo = user_repo
        self.settings = settings

    def register_user(self, email: str, password: str) -> User:
        email = normalize_email(email)
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

        logger.info(f"Attempting to register user: {email}")
        if self.user_repo.get_by_email(email) is not None:
            logger.warning(f"Registration failed: email '{email}' already exists")
            raise UserAlreadyExistsError("User with this email already exists")

        user = User(
            user_id=generate_uuid(),
            email=email,
            password_hash=hash_password(password),
            created_at=utc_now(),
        )
        self.user_repo.create_user(user)
        logger.info(f"Successfully registered user: {email} [user_id={user.user_id}]")
        return user

    def login_user(self, email: str, password: str) -> Tuple[str, User]:
        try:
            email = normalize_email(email)
        except ValidationError:
            raise InvalidCredentialsError("Invalid email or password")

        logger.info(f"Login attempt for user: {email}")
        user = self.user_repo.get_by_email(email)
        if user is None:
            logger.warning(f"Login failed: email '{email}' not found")
            raise InvalidCredentialsError("Invalid email or password")

        if not verify_password(password or "", user.password_hash):
            logger.warning(f"Login failed: invalid password for '{email}'")
            raise InvalidCredentialsError("Invalid email or password")

        token = create_access_token(
            user_id=user.user_id,
            email=user.email,
            secret=self.settings.jwt_secret,
            algorithm=self.settings.jwt_algorithm,
            ttl_seconds=self.settings.token_ttl_seconds,
        )
        logger.info(f"Successfully logged in user: {email} [user_id={user.user_id}]")
        return token, user

    def authenticate_token(self, token: str) -> str:
        """
        Resolve a token to the id of an existing user.

        Raises:
            InvalidTokenError: If the token is invalid or its user no longer exists
        """
        claims = decode_access_token(token, self.settings.jwt_secret, self.settings.jwt_algorithm)
        user_id = claims["sub"]
        if self.user_repo.get_by_id(user_id) is None:
            logger.warning(f"Token references unknown user [user_id={user_id}]")
            raise InvalidTokenError("Invalid or expired token")
        return user_id
