import logging
from typing import Tuple

from ..crud import UserStore
from ..errors import conflict, invalid_credentials, not_found
from ..models import User
from ..timeutils import utcnow
from .passwords import PasswordHasher
from .tokens import TokenService

logger = logging.getLogger(__name__)


class AuthService:
    """Registration, login and credential management."""

    def __init__(self, users: UserStore, hasher: PasswordHasher, tokens: TokenService):
        self.users = users
        self.hasher = hasher
        self.tokens = tokens

    def register(self, username: str, email: str, password: str) -> Tuple[User, str]:
        """Create an account and issue its first token.

        Raises:
            AppError: CONFLICT naming ``email`` or ``username`` when taken
        """
        email = email.lower()
        taken = self.users.find_taken_field(email=email, username=username)
        if taken:
            raise conflict(taken, f"User already exists with this {taken}")

        user = User(
            username=username,
            email=email,
            hashed_password=self.hasher.hash(password),
        )
        user = self.users.save(user)
        logger.info(f"User registered: user={user.id} username={user.username}")
        return user, self.tokens.issue(user.id)

    def login(self, email: str, password: str) -> Tuple[User, str]:
        """Check credentials and issue a fresh token.

        Unknown email and wrong password fail with the same error.
        """
        user = self.users.get_by_email(email)
        if user is None:
            self.hasher.verify_dummy(password)
            logger.warning("Login failed: unknown email")
            raise invalid_credentials()
        if not self.hasher.verify(password, user.hashed_password):
            logger.warning(f"Login failed: wrong password for user={user.id}")
            raise invalid_credentials()
        return user, self.tokens.issue(user.id)

    def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        user = self.users.get(user_id)
        if user is None:
            raise not_found("User not found")
        if not self.hasher.verify(current_password, user.hashed_password):
            raise invalid_credentials("Current password is incorrect")
        user.hashed_password = self.hasher.hash(new_password)
        user.updated_at = utcnow()
        self.users.save(user)
        logger.info(f"Password changed: user={user_id}")

    def refresh_token(self, user_id: int) -> str:
        # Caller already passed the auth guard
        return self.tokens.issue(user_id)

    def check_email_availability(self, email: str) -> bool:
        return self.users.get_by_email(email) is None

    def check_username_availability(self, username: str) -> bool:
        return self.users.get_by_username(username) is None
