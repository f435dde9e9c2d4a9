from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
import bcrypt
from app.config import settings

# Bcrypt rounds
BCRYPT_ROUNDS = 12

# "type" claim per audience
ADMIN_TOKEN = "admin"
DELIVERY_TOKEN = "delivery"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash"""
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8")[:72], hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    if not password:
        raise ValueError("Password cannot be empty")

    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode('utf-8')[:72]
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": datetime.utcnow()})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_admin_token(admin_id: int, role: str) -> str:
    return create_access_token({"sub": str(admin_id), "adminId": admin_id, "role": role, "type": ADMIN_TOKEN})


def create_delivery_token(delivery_person_id: int) -> str:
    return create_access_token({
        "sub": str(delivery_person_id),
        "deliveryPersonId": delivery_person_id,
        "type": DELIVERY_TOKEN,
    })


def decode_token(token: str, token_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT. With token_type, a token minted for the other
    audience (admin vs delivery app) is rejected as well.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if token_type is not None and payload.get("type") != token_type:
        return None
    return payload
