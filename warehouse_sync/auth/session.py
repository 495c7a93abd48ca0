"""
Cookie-based session management.

Sessions are issued by the account service; this service only verifies them
and reads the tenant the caller acts for.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import Request
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired


# Session duration: 24 hours
SESSION_MAX_AGE = 24 * 60 * 60  # seconds
SESSION_COOKIE_NAME = "session"


class SessionManager:
    """Manages signed cookie-based sessions."""

    def __init__(self, secret_key: str):
        """
        Initialize session manager.

        Args:
            secret_key: Secret key for signing cookies
        """
        self._serializer = URLSafeTimedSerializer(secret_key)

    def create_token(self, tenant_id: str, user_id: str) -> str:
        """Sign session data for a user acting within a tenant."""
        session_data = {
            "tenant_id": tenant_id,
            "user_id": user_id,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        return self._serializer.dumps(session_data)

    def get_session(self, request: Request) -> Optional[dict]:
        """
        Get session data from request cookie.

        Returns:
            Session data dict or None if invalid/expired
        """
        token = request.cookies.get(SESSION_COOKIE_NAME)
        if not token:
            return None

        try:
            return self._serializer.loads(token, max_age=SESSION_MAX_AGE)
        except (BadSignature, SignatureExpired):
            return None
