"""Authentication service for password handling."""

from typing import TYPE_CHECKING

from passlib.context import CryptContext

if TYPE_CHECKING:
    from sachi.services.store import CredentialStore, UserRecord

MIN_PASSWORD_LENGTH = 6
# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72
DEFAULT_BCRYPT_ROUNDS = 12

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=DEFAULT_BCRYPT_ROUNDS,
)


def configure_hashing(rounds: int) -> None:
    """Set the bcrypt cost used for new hashes."""
    pwd_context.update(bcrypt__rounds=rounds)


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    if password_too_long(plain_password):
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed or unknown hash format in the database
        return False


def get_password_hash(password: str) -> str:
    """Hash a password.

    Raises:
        ValueError: if the password is longer than bcrypt can tell apart.
    """
    if password_too_long(password):
        raise ValueError(f"Password exceeds {MAX_PASSWORD_BYTES} bytes")
    return pwd_context.hash(password)


def authenticate_user(store: "CredentialStore", email: str, password: str) -> "UserRecord | None":
    """Authenticate a user by email and password.

    Unknown emails still pay for one hash verification so that response
    timing doesn't reveal which addresses are registered.
    """
    user = store.get_user_by_email(email)
    if not user:
        pwd_context.dummy_verify()
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user
