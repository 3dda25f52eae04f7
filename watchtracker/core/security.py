import logging
import secrets
import bcrypt
from passlib.context import CryptContext
from datetime import datetime, timedelta
from jose import jwt
from watchtracker.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES

logger = logging.getLogger(__name__)

# passlib handles legacy "$2a$"/"$2y$" hashes imported from older databases;
# new hashes are produced with bcrypt directly
try:
    pwd_context = CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
    )
    logger.debug("Password context initialized")
except Exception as e:
    logger.warning(f"Failed to initialize passlib context: {e}, using bcrypt directly")
    pwd_context = None

UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
DIGITS = "0123456789"
SYMBOLS = "!@#$%^&*"


def _truncate_password(password: str) -> bytes:
    """Encode and cut to bcrypt's 72-byte limit without splitting a UTF-8 character."""
    password_bytes = password.encode("utf-8")
    if len(password_bytes) <= 72:
        return password_bytes

    logger.warning("Password exceeds 72 bytes, truncating before hashing")
    truncated = password_bytes[:72]
    return truncated.decode("utf-8", errors="ignore").encode("utf-8")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string (bcrypt format compatible with passlib)

    Raises:
        ValueError: If the password cannot be hashed
    """
    try:
        return bcrypt.hashpw(_truncate_password(password), bcrypt.gensalt()).decode("utf-8")
    except Exception as e:
        logger.error(f"Password hashing failed: {e}", exc_info=True)
        raise ValueError("Invalid password") from e


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a password against its hash.

    Supports both bcrypt-native hashes and passlib-wrapped hashes.
    """
    if not password or not hashed:
        return False
    try:
        try:
            return bcrypt.checkpw(_truncate_password(password), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            if pwd_context:
                return pwd_context.verify(password, hashed)
            return False
    except Exception as e:
        logger.error(f"Password verification failed: {e}", exc_info=True)
        return False


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and verify a JWT. Raises ``jose.JWTError`` on a bad or expired token."""
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])


def generate_secure_password(length: int = 12) -> str:
    """
    Generate a temporary password for provisioned accounts.

    The result always contains at least one uppercase letter, one lowercase
    letter, one digit and one symbol from ``!@#$%^&*``.
    """
    if length < 4:
        raise ValueError("Password length must be at least 4")

    alphabet = UPPERCASE + LOWERCASE + DIGITS + SYMBOLS
    chars = [
        secrets.choice(UPPERCASE),
        secrets.choice(LOWERCASE),
        secrets.choice(DIGITS),
        secrets.choice(SYMBOLS),
    ]
    chars.extend(secrets.choice(alphabet) for _ in range(length - 4))

    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
