from __future__ import annotations

# academic_monitor/services/admin_svc.py
import uuid

from ..db import get_conn
from ..domain.errors import NotFoundError, ValidationError
from ..logs import LogContext
from ..repository import account_repo, job_repo, semester_repo, student_repo
from .auth_svc import ROLE_ADMIN, ROLE_STUDENT, campus_email, hash_password
from .config_svc import get_config
from .upload_svc import utc_now_iso
from .utils import is_uuid_like, semester_label


def set_active_semester(semester_id: str, log: LogContext) -> dict:
    if not semester_id or not is_uuid_like(semester_id):
        raise ValidationError("Invalid semester_id")
    with get_conn() as conn:
        sem = semester_repo.get_one(conn, semester_id)
        if not sem:
            raise NotFoundError("Semester not found")
        before = semester_repo.get_active(conn)
        semester_repo.set_active(conn, semester_id)
    log.set_entity("SEMESTER", semester_id)
    log.set_before(dict(before) if before else None)
    log.set_after({"semester_id": semester_id, "label": semester_label(sem["nomor"], sem["tahun_ajaran"])})
    return {"success": True, "semester_id": semester_id}


def bulk_create_accounts(nims: list[str], password: str | None, role: str | None, log: LogContext) -> dict:
    """
    Create login accounts for existing students.

    The email is {nim}@{campus domain}. A password shorter than 6 characters
    falls back to the configured default. Existing accounts are skipped (and
    upgraded when role is admin); unknown NIMs are reported in errors.
    """
    clean = [str(n).strip() for n in (nims or []) if str(n).strip()]
    if not clean:
        raise ValidationError("nims[] required")
    cfg = get_config()
    pw = password if password and len(password) >= 6 else cfg["default_password"]
    target_role = ROLE_ADMIN if role == ROLE_ADMIN else ROLE_STUDENT
    pw_hash = hash_password(pw)

    created = skipped = failed = 0
    errors: list[dict] = []
    with get_conn() as conn:
        names = student_repo.name_map_for_nims(conn, clean)
        for nim in dict.fromkeys(clean):
            if nim not in names:
                failed += 1
                errors.append({"nim": nim, "error": "NIM not found in students"})
                continue
            email = campus_email(nim, cfg["campus_email_domain"])
            existing = account_repo.get_by_email(conn, email)
            if existing:
                skipped += 1
                if target_role == ROLE_ADMIN and existing["role"] != ROLE_ADMIN:
                    account_repo.update_role(conn, existing["id"], ROLE_ADMIN)
                continue
            account_repo.insert_user(conn, str(uuid.uuid4()), email, pw_hash, target_role, nim, names[nim])
            created += 1

    out = {"created": created, "skipped": skipped, "failed": failed, "errors": errors}
    log.set_payload({"nims": clean, "role": target_role})
    log.set_after(out)
    return out


def create_admin(email: str | None, password: str, full_name: str | None, log: LogContext) -> dict:
    """Create an admin account, or promote the existing account with that email."""
    if not password or len(password) < 8:
        raise ValidationError("password minimal 8 karakter")
    email = (email or "").strip() or f"admin@{get_config()['campus_email_domain']}"
    with get_conn() as conn:
        existing = account_repo.get_by_email(conn, email)
        if existing:
            account_repo.update_role(conn, existing["id"], ROLE_ADMIN)
            account_repo.update_password(conn, existing["id"], hash_password(password))
            uid, created = existing["id"], False
        else:
            uid = str(uuid.uuid4())
            account_repo.insert_user(conn, uid, email, hash_password(password), ROLE_ADMIN, None, full_name or "Administrator")
            created = True
    log.set_entity("USER", uid)
    log.set_after({"email": email, "created": created})
    return {"ok": True, "id": uid, "email": email, "created": created}


def enqueue_analysis(student_ids: list[str] | None, log: LogContext) -> dict:
    """Queue analysis jobs; no ids means every student."""
    now = utc_now_iso()
    with get_conn() as conn:
        if student_ids:
            ids = [s for s in dict.fromkeys(student_ids) if student_repo.get_one(conn, s)]
        else:
            ids = student_repo.list_ids(conn)
        job_ids = [job_repo.enqueue(conn, sid, now) for sid in ids]
    out = {"queued": len(job_ids), "job_ids": job_ids}
    log.set_after(out)
    return out
