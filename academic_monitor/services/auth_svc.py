from __future__ import annotations

# academic_monitor/services/auth_svc.py
import datetime as dt
import logging
import re
import uuid

import jwt
from passlib.context import CryptContext

from ..db import get_conn
from ..domain.errors import (
    ConflictError,
    ForbiddenError,
    ServiceConfigError,
    UnauthorizedError,
    UnprocessableError,
    ValidationError,
)
from ..logs import LogContext
from ..repository import account_repo, student_repo
from .config_svc import get_config, get_secret

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ALGORITHM = "HS256"
COOKIE_NAME = "access_token"
ROLE_ADMIN = "admin"
ROLE_STUDENT = "student"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def _secret() -> str:
    secret = get_secret("auth_secret")
    if not secret:
        raise ServiceConfigError("AUTH_SECRET is not configured")
    return secret


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _iso(ts: dt.datetime) -> str:
    return ts.strftime("%Y-%m-%dT%H:%M:%S")


def campus_email(nim: str, domain: str | None = None) -> str:
    return f"{nim}@{domain or get_config()['campus_email_domain']}"


def issue_token(conn, user) -> tuple[str, int]:
    """Open a session row and sign a token bound to it. Returns (token, ttl seconds)."""
    ttl_min = get_config()["token_ttl_minutes"]
    now = _now()
    exp = now + dt.timedelta(minutes=ttl_min)
    sid = str(uuid.uuid4())
    account_repo.insert_session(conn, sid, user["id"], _iso(now), _iso(exp))
    claims = {"sub": user["id"], "role": user["role"], "nim": user["nim"], "jti": sid, "iat": now, "exp": exp}
    return jwt.encode(claims, _secret(), algorithm=ALGORITHM), ttl_min * 60


def verify_token(token: str) -> dict:
    """Decode the token and check its session is still open. Returns the user row as a dict plus session_id."""
    try:
        payload = jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise UnauthorizedError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError("Invalid token") from e

    sid, uid = payload.get("jti"), payload.get("sub")
    if not sid or not uid:
        raise UnauthorizedError("Invalid token")
    with get_conn() as conn:
        sess = account_repo.get_session(conn, sid)
        if not sess or sess["revoked"] or sess["user_id"] != uid:
            raise UnauthorizedError("Session revoked")
        user = account_repo.get_by_id(conn, uid)
    if not user:
        raise UnauthorizedError("User not found")
    out = {k: user[k] for k in ("id", "email", "role", "nim", "full_name")}
    out["session_id"] = sid
    return out


def login(nim: str, password: str, log: LogContext) -> dict:
    nim = (nim or "").strip()
    if not nim or not password:
        raise ValidationError("NIM dan kata sandi wajib diisi.")
    email = campus_email(nim)
    log.set_user(email)
    with get_conn() as conn:
        user = account_repo.get_by_email(conn, email)
        if not user or not verify_password(password, user["password_hash"]):
            raise UnauthorizedError("NIM atau kata sandi salah.")
        token, ttl = issue_token(conn, user)
    log.set_entity("USER", user["id"])
    return {"message": "Login successful", "access_token": token, "token_type": "bearer", "expires_in": ttl}


def register(email: str, password: str, full_name: str | None, log: LogContext) -> dict:
    email = (email or "").strip()
    if not email or not password:
        raise ValidationError("Email dan password wajib diisi.")
    if not _EMAIL_RE.match(email):
        raise ValidationError("Format email tidak valid.")
    if len(password) < 6:
        raise ValidationError("Password minimal 6 karakter.")

    # campus addresses carry the NIM in the local part
    local, _, domain = email.partition("@")
    nim = local if domain.lower() == get_config()["campus_email_domain"].lower() else None
    uid = str(uuid.uuid4())
    with get_conn() as conn:
        if account_repo.get_by_email(conn, email):
            raise ConflictError("Email sudah terdaftar.")
        account_repo.insert_user(conn, uid, email, hash_password(password), ROLE_STUDENT, nim, full_name)
    log.set_user(email)
    log.set_entity("USER", uid)
    return {"message": "Registration successful.", "id": uid}


def logout(user: dict, log: LogContext) -> dict:
    """Revoke every session of the user, not only the current one."""
    with get_conn() as conn:
        n = account_repo.revoke_sessions_for_user(conn, user["id"])
    log.set_user(user["email"])
    log.set_after({"revoked": n})
    return {"message": "Logout successful"}


def change_password(user: dict, current_password: str, new_password: str, confirm_password: str | None,
                    log: LogContext) -> dict:
    if not new_password or not (8 <= len(new_password) <= 72):
        raise ValidationError("new_password harus 8-72 karakter.")
    if confirm_password is not None and confirm_password != new_password:
        raise ValidationError("Konfirmasi password tidak sama.")
    log.set_user(user["email"])
    with get_conn() as conn:
        row = account_repo.get_by_id(conn, user["id"])
        if not row or not verify_password(current_password or "", row["password_hash"]):
            raise ForbiddenError("Password saat ini salah.")
        account_repo.update_password(conn, user["id"], hash_password(new_password))
        account_repo.revoke_sessions_for_user(conn, user["id"], keep_session_id=user.get("session_id"))
    return {"ok": True, "message": "Password berhasil diubah."}


def get_profile(user: dict) -> dict:
    role = user["role"]
    if role == ROLE_ADMIN:
        return {"full_name": user.get("full_name"), "role": ROLE_ADMIN}
    if role == ROLE_STUDENT:
        nim = user.get("nim")
        if not nim:
            raise UnprocessableError("NIM is missing for student profile")
        with get_conn() as conn:
            student = student_repo.get_by_nim(conn, nim)
        return {
            "id": student["id"] if student else None,
            "full_name": user.get("full_name"),
            "role": ROLE_STUDENT,
            "nim": nim,
            "prodi": student["prodi"] if student else None,
        }
    raise ValidationError(f"Unsupported role: {role}")


def can_access_student(user: dict, student_id: str) -> bool:
    """Admins read everyone; a student only the row whose nim is their own."""
    if user["role"] == ROLE_ADMIN:
        return True
    if not user.get("nim"):
        return False
    with get_conn() as conn:
        return student_repo.owned_by_nim(conn, student_id, user["nim"])
