"""
Authentication module for storefront users.

Provides email/password login against the Users container and in-memory
session tokens. A session resolves to a ``Caller`` that the order service
uses for its permission checks.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any

from pydantic import BaseModel

from config import settings

logger = logging.getLogger(__name__)

ADMIN_ROLE = "ADMIN"
USER_ROLE = "USER"
SYSTEM_ROLE = "SYSTEM"


# =============================================================================
# MODELS
# =============================================================================

class LoginRequest(BaseModel):
    """Login request model."""
    email: str
    password: str


class LoginResponse(BaseModel):
    """Login response model."""
    success: bool
    message: str
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None


class Caller(BaseModel):
    """Identity of whoever is invoking an order operation."""
    user_id: str
    email: str = ""
    role: str = USER_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def is_system(self) -> bool:
        return self.role == SYSTEM_ROLE

    @property
    def actor(self) -> str:
        """Label stored in ``created_by`` on timeline events."""
        if self.is_system:
            return SYSTEM_ROLE
        return ADMIN_ROLE if self.is_admin else USER_ROLE


SYSTEM_CALLER = Caller(user_id="system", role=SYSTEM_ROLE)


# =============================================================================
# PASSWORD UTILITIES
# =============================================================================

_HASH_ITERATIONS = 200_000


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Hash a password with PBKDF2-SHA256. Output format: ``<salt>$<hex digest>``."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _HASH_ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    if not password_hash or "$" not in password_hash:
        return False
    salt, _ = password_hash.split("$", 1)
    return hmac.compare_digest(hash_password(password, salt), password_hash)


def generate_session_token() -> str:
    """Generate a secure session token."""
    return secrets.token_urlsafe(32)


# =============================================================================
# SESSION STORE (In-Memory)
# =============================================================================

# Sessions do not survive a restart; move to Cosmos DB for multi-instance deployments.
_sessions: Dict[str, Dict[str, Any]] = {}


def create_session(user_data: Dict[str, Any]) -> str:
    """Create a new session for a user and return the token."""
    token = generate_session_token()
    now = datetime.now(timezone.utc)

    _sessions[token] = {
        "user_id": user_data["id"],
        "email": user_data.get("email", ""),
        "role": user_data.get("role", USER_ROLE),
        "created_at": now.isoformat(),
        "expires_at": (now + timedelta(hours=settings.session_ttl_hours)).isoformat(),
    }

    logger.info(f"Created session for user {user_data['id']}")
    return token


def get_session(token: str) -> Optional[Dict[str, Any]]:
    """Get session data for a token, or None if invalid/expired."""
    if not token or token not in _sessions:
        return None

    session = _sessions[token]

    # Check expiration
    expires_at = datetime.fromisoformat(session["expires_at"])
    if datetime.now(timezone.utc) > expires_at:
        del _sessions[token]
        return None

    return session


def delete_session(token: str) -> bool:
    """Delete a session (logout)."""
    if token in _sessions:
        del _sessions[token]
        return True
    return False


def get_caller_from_token(token: Optional[str]) -> Optional[Caller]:
    """Resolve a session token to a ``Caller``."""
    session = get_session(token) if token else None
    if not session:
        return None
    return Caller(user_id=session["user_id"], email=session["email"], role=session["role"])
