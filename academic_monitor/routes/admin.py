from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..logs import LogContext
from ..services.admin_svc import bulk_create_accounts, create_admin, enqueue_analysis, set_active_semester
from ..services.config_svc import get_config, update_config
from .deps import API_PREFIX, require_admin, to_http

router = APIRouter()


class SetSemesterBody(BaseModel):
    semester_id: str


class BulkAccountsBody(BaseModel):
    nims: list[str]
    password: str | None = None
    role: str | None = None


class CreateAdminBody(BaseModel):
    email: str | None = None
    password: str
    full_name: str | None = None


class EnqueueBody(BaseModel):
    student_ids: list[str] | None = None


class SettingsUpdateBody(BaseModel):
    updates: dict


def _run(action: str, admin: dict, payload: dict | None, fn):
    log = LogContext(action, user=admin["email"])
    if payload is not None:
        log.set_payload(payload)
    try:
        out = fn(log)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)


@router.post(f"{API_PREFIX}/admin/set-semester")
def api_admin_set_semester(body: SetSemesterBody, admin: dict = Depends(require_admin)):
    return _run("ADMIN_SET_SEMESTER", admin, body.dict(), lambda log: set_active_semester(body.semester_id, log))


@router.post(f"{API_PREFIX}/admin/accounts/bulk")
def api_admin_bulk_accounts(body: BulkAccountsBody, admin: dict = Depends(require_admin)):
    return _run(
        "ADMIN_BULK_ACCOUNTS", admin, None,
        lambda log: bulk_create_accounts(body.nims, body.password, body.role, log),
    )


@router.post(f"{API_PREFIX}/admin/create-admin")
def api_admin_create_admin(body: CreateAdminBody, admin: dict = Depends(require_admin)):
    return _run(
        "ADMIN_CREATE_ADMIN", admin, {"email": body.email, "full_name": body.full_name},
        lambda log: create_admin(body.email, body.password, body.full_name, log),
    )


@router.post(f"{API_PREFIX}/admin/enqueue")
def api_admin_enqueue(body: EnqueueBody, admin: dict = Depends(require_admin)):
    return _run("ADMIN_ENQUEUE", admin, body.dict(), lambda log: enqueue_analysis(body.student_ids, log))


@router.get(f"{API_PREFIX}/admin/settings")
def api_admin_settings_get(admin: dict = Depends(require_admin)):
    return get_config()


@router.post(f"{API_PREFIX}/admin/settings")
def api_admin_settings_update(body: SettingsUpdateBody, admin: dict = Depends(require_admin)):
    return _run(
        "SETTINGS_UPDATE", admin, body.dict(),
        lambda log: {"message": "ok", "updated": update_config(body.updates, log)},
    )
