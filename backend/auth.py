"""
Identity for the cafe API: password hashing, JWT access tokens and turning a
bearer token back into a User row.
"""
import logging
import os
import secrets
from datetime import datetime, timedelta
from typing import Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# fall back to pbkdf2 when the bcrypt backend is missing or incompatible
try:
    pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
    pwd_context.hash("probe")
except Exception as e:
    logger.warning(f"bcrypt unavailable ({e}), hashing with pbkdf2_sha256")
    pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SECRET_KEY_FILE = os.getenv("SECRET_KEY_FILE", ".secret_key")


def get_secret_key() -> str:
    """SECRET_KEY from the environment, else a key persisted next to the app."""
    env_key = os.getenv("SECRET_KEY")
    if env_key:
        return env_key

    if os.path.exists(SECRET_KEY_FILE):
        try:
            with open(SECRET_KEY_FILE, "r", encoding="utf-8") as f:
                stored = f.read().strip()
            if stored:
                return stored
        except UnicodeDecodeError:
            logger.warning(f"{SECRET_KEY_FILE} is unreadable, replacing it")

    new_key = secrets.token_urlsafe(32)
    with open(SECRET_KEY_FILE, "w", encoding="utf-8") as f:
        f.write(new_key)
    if os.name != "nt":
        os.chmod(SECRET_KEY_FILE, 0o600)
    logger.info(f"Generated a new signing key in {SECRET_KEY_FILE}")
    return new_key


SECRET_KEY = get_secret_key()
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    # staff created by an admin may have no password yet
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def authenticate_user(db: Session, email: str, password: str):
    from models import User

    user = db.query(User).filter(User.email == email).first()
    if user is None or not verify_password(password, user.password):
        return None
    return user


def create_access_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    claims = dict(data)
    minutes = ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    claims["exp"] = datetime.utcnow() + timedelta(minutes=minutes)
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def create_user_token(user) -> str:
    # PyJWT wants "sub" to be a string
    return create_access_token({"sub": str(user.id), "email": user.email, "role": user.role})


def verify_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError:
        # covers expired signatures too
        return None


def user_from_token(db: Session, token: str):
    """The User a token was issued to, or None if the token is bad or the user is gone."""
    from models import User

    payload = verify_token(token)
    if not payload:
        return None
    subject = str(payload.get("sub") or "")
    if not subject.isdigit():
        return None
    return db.query(User).filter(User.id == int(subject)).first()
