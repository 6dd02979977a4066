from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..domain.errors import ValidationError, status_for
from ..providers.ai_provider import AIProviderPort, build_ai_client
from ..services.auth_svc import COOKIE_NAME, ROLE_ADMIN, can_access_student, verify_token
from ..services.config_svc import get_config
from ..services.utils import is_uuid_like

API_PREFIX = "/api/1.0"

security = HTTPBearer(auto_error=False)


def to_http(exc: Exception) -> HTTPException:
    """Map a service exception onto its HTTP status; the app renders detail as {"error": ...}."""
    if isinstance(exc, HTTPException):
        return exc
    detail = str(exc) or "Internal Server Error"
    samples = getattr(exc, "samples", None) if isinstance(exc, ValidationError) else None
    if samples is not None:
        return HTTPException(status_code=status_for(exc), detail={"error": detail, "samples": samples})
    return HTTPException(status_code=status_for(exc), detail=detail)


def current_user(request: Request, credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> dict:
    token = credentials.credentials if credentials else request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        return verify_token(token)
    except Exception as e:
        raise to_http(e)


def require_admin(user: dict = Depends(current_user)) -> dict:
    if user["role"] != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Forbidden")
    return user


def student_access(student_id: str, user: dict = Depends(current_user)) -> dict:
    """Path guard for /students/{student_id}/...: valid id, then ownership."""
    if not is_uuid_like(student_id):
        raise HTTPException(status_code=400, detail="Invalid student id")
    if not can_access_student(user, student_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    return user


def get_ai_provider() -> AIProviderPort:
    try:
        return build_ai_client(get_config())
    except Exception as e:
        raise to_http(e)
