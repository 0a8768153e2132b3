"""
Authentication routes - login/logout.
"""

import asyncio
import time
from collections import defaultdict
from fastapi import APIRouter, Request, Form
from fastapi.responses import JSONResponse

from ..config import settings
from ..dependencies import get_session_manager
from ..auth import verify_password

router = APIRouter()

# Brute force protection: failed login timestamps per client IP
failed_attempts = defaultdict(list)
LOCKOUT_THRESHOLD = 5
LOCKOUT_DURATION = 300  # seconds
MAX_FAILURE_DELAY = 3.0  # seconds


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/login")
async def login(request: Request, password: str = Form(...)):
    """Start an operator session."""
    session_manager = get_session_manager()
    client_ip = _client_ip(request)
    current_time = time.time()

    failed_attempts[client_ip] = [
        attempt_time for attempt_time in failed_attempts[client_ip]
        if current_time - attempt_time < LOCKOUT_DURATION
    ]

    if len(failed_attempts[client_ip]) >= LOCKOUT_THRESHOLD:
        remaining = int(LOCKOUT_DURATION - (current_time - failed_attempts[client_ip][0]))
        return JSONResponse(
            {"detail": f"Too many failed attempts. Try again in {remaining} seconds."},
            status_code=429,
        )

    if verify_password(password, settings.admin_password_hash):
        failed_attempts.pop(client_ip, None)
        response = JSONResponse({"authenticated": True})
        session_manager.create_session(response)
        return response

    failed_attempts[client_ip].append(current_time)

    # Slow down repeated guesses
    delay = min(len(failed_attempts[client_ip]) * 0.5, MAX_FAILURE_DELAY)
    await asyncio.sleep(delay)

    return JSONResponse({"detail": "Invalid password"}, status_code=401)


@router.post("/logout")
async def logout():
    """End the operator session."""
    session_manager = get_session_manager()
    response = JSONResponse({"authenticated": False})
    session_manager.clear_session(response)
    return response
