import logging
from typing import Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from media_search.core.errors import AuthError, ConflictError, PersistenceError
from media_search.core.security import (
    create_access_token,
    decode_access_token,
    dummy_verify,
    get_password_hash,
    verify_password,
)
from media_search.models.user import User

logger = logging.getLogger(__name__)

EMAIL_TAKEN_MESSAGE = "Email already registered"
INVALID_CREDENTIALS_MESSAGE = "Incorrect email or password"


class AuthService:
    """Registration, login, and bearer-token authentication"""

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        try:
            return db.query(User).filter(User.email == email).first()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error looking up user by email: {e}")
            raise PersistenceError() from e

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        try:
            return db.query(User).filter(User.id == user_id).first()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error looking up user id={user_id}: {e}")
            raise PersistenceError() from e

    def register(self, db: Session, name: str, email: str, password: str) -> User:
        """
        Create a user with a bcrypt-hashed password.

        Input shape (required fields, email format) is checked by the request
        schema before this is called. Raises ConflictError for a taken email.
        """
        email = email.lower()
        if self.get_user_by_email(db, email):
            logger.warning(f"Registration rejected, email already registered: {email}")
            raise ConflictError(EMAIL_TAKEN_MESSAGE)

        user = User(
            name=name,
            email=email,
            hashed_password=get_password_hash(password),
        )
        try:
            db.add(user)
            db.commit()
            db.refresh(user)
        except IntegrityError as e:
            # Two concurrent registrations can both pass the lookup above;
            # the unique constraint catches the second
            db.rollback()
            raise ConflictError(EMAIL_TAKEN_MESSAGE) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Registration error for {email}: {e}")
            raise PersistenceError() from e

        logger.info(f"User registered: id={user.id} email={user.email}")
        return user

    def login(self, db: Session, email: str, password: str) -> Tuple[str, User]:
        """Check credentials and issue an access token. Returns (token, user)."""
        user = self.get_user_by_email(db, email.lower())

        # Same error and the same bcrypt cost for unknown email and wrong password
        if user is None:
            dummy_verify()
            logger.warning(f"Failed login attempt for {email}")
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)

        if not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login attempt for {email}")
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)

        if not user.is_active:
            logger.warning(f"Login attempt for inactive user id={user.id}")
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)

        token = create_access_token({"sub": str(user.id), "id": user.id, "email": user.email})
        logger.info(f"Login successful: id={user.id}")
        return token, user

    def authenticate(self, db: Session, token: Optional[str]) -> User:
        """
        Resolve a bearer token to an active user.

        Raises AuthError when the token is missing, malformed, expired, or names
        a user that no longer exists or is inactive. A failed user lookup
        raises PersistenceError.
        """
        if not token:
            raise AuthError()

        payload = decode_access_token(token)
        if payload is None:
            raise AuthError()

        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            raise AuthError()

        user = self.get_user_by_id(db, user_id)
        if user is None or not user.is_active:
            raise AuthError()
        return user


auth_service = AuthService()
