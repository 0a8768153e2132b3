"""
Signed cookie sessions for the operator API.
"""

from typing import Optional

from fastapi import Request, Response
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from ..db.models import utcnow


SESSION_MAX_AGE = 12 * 60 * 60  # seconds
SESSION_COOKIE_NAME = "price_sync_session"


class SessionManager:
    """Issues and verifies operator session cookies."""

    def __init__(self, secret_key: str, secure_cookies: bool = False):
        self._serializer = URLSafeTimedSerializer(secret_key, salt="price-sync-session")
        self.secure_cookies = secure_cookies

    def create_session(self, response: Response, user_id: str = "operator") -> None:
        """
        Sign a session payload and attach it to the response.

        Args:
            response: Outgoing response
            user_id: Identity stored in the session
        """
        token = self._serializer.dumps({
            "user_id": user_id,
            "issued_at": utcnow().isoformat(),
        })

        response.set_cookie(
            key=SESSION_COOKIE_NAME,
            value=token,
            max_age=SESSION_MAX_AGE,
            httponly=True,
            samesite="lax",
            secure=self.secure_cookies,
        )

    def get_session(self, request: Request) -> Optional[dict]:
        """Session payload, or None when missing, tampered with or expired."""
        token = request.cookies.get(SESSION_COOKIE_NAME)
        if not token:
            return None

        try:
            return self._serializer.loads(token, max_age=SESSION_MAX_AGE)
        except (BadSignature, SignatureExpired):
            return None

    def clear_session(self, response: Response) -> None:
        response.delete_cookie(key=SESSION_COOKIE_NAME, httponly=True, samesite="lax")

    def is_authenticated(self, request: Request) -> bool:
        return self.get_session(request) is not None
