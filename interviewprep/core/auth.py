"""
Request identity.

Session handling lives in front of this service: the caller's user id arrives
in the X-User-Id header. Admin endpoints require X-Admin-Key to match
ADMIN_KEY (ADMIN_API_KEY in the environment takes precedence).
"""
import hashlib
import hmac
import os
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from interviewprep.core.config import settings
from interviewprep.core.errors import PermissionError, ValidationError


@dataclass
class AdminActor:
    """Represents an authenticated admin actor."""
    actor_id: str  # "key:<hash>"


def get_admin_api_key() -> Optional[str]:
    env_key = os.getenv("ADMIN_API_KEY")
    if env_key:
        return env_key
    return settings.ADMIN_KEY


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> int:
    """Resolve the caller's user id from X-User-Id."""
    if not x_user_id:
        raise ValidationError("X-User-Id header is required")
    try:
        user_id = int(x_user_id.strip())
    except ValueError:
        raise ValidationError("X-User-Id must be a positive integer")
    if user_id <= 0:
        raise ValidationError("X-User-Id must be a positive integer")
    return user_id


def require_admin(request: Request) -> AdminActor:
    """FastAPI dependency: reject unless X-Admin-Key matches the configured key."""
    expected_key = get_admin_api_key()
    header_key = request.headers.get("X-Admin-Key", "").strip()
    if not expected_key or not header_key or not hmac.compare_digest(header_key, expected_key):
        raise PermissionError("Admin access required")
    key_hash = hashlib.sha256(header_key.encode()).hexdigest()[:16]
    return AdminActor(actor_id=f"key:{key_hash}")
