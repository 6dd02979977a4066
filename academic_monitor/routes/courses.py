from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..logs import LogContext
from ..services.course_svc import add_requisite, create_course, list_courses, update_course
from .deps import API_PREFIX, current_user, require_admin, to_http

router = APIRouter()


class CourseCreateBody(BaseModel):
    kode: str
    nama: str
    sks: int
    mk_pilihan: bool = False
    min_index: str | None = None
    semester_no: int | None = None


class CourseUpdateBody(BaseModel):
    kode: str | None = None
    nama: str | None = None
    sks: int | None = None
    mk_pilihan: bool | None = None
    min_index: str | None = None
    semester_no: int | None = None


class RequisiteBody(BaseModel):
    kode: str  # the required course


@router.get(f"{API_PREFIX}/courses")
def api_courses_list(user: dict = Depends(current_user)):
    return list_courses()


@router.post(f"{API_PREFIX}/courses", status_code=201)
def api_course_create(body: CourseCreateBody, admin: dict = Depends(require_admin)):
    log = LogContext("COURSE_CREATE", user=admin["email"])
    log.set_payload(body.dict())
    try:
        out = create_course(body.kode, body.nama, body.sks, body.mk_pilihan, body.min_index, body.semester_no, log)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)


@router.patch(f"{API_PREFIX}/courses/{{course_id}}")
def api_course_update(course_id: str, body: CourseUpdateBody, admin: dict = Depends(require_admin)):
    log = LogContext("COURSE_UPDATE", user=admin["email"])
    fields = {k: v for k, v in body.dict().items() if v is not None}
    log.set_payload(fields)
    try:
        out = update_course(course_id, fields, log)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)


def _add_requisite(kode: str, body: RequisiteBody, kind: str, admin: dict):
    log = LogContext(f"COURSE_ADD_{kind.upper()}", user=admin["email"])
    log.set_payload({"course": kode, kind: body.kode})
    try:
        out = add_requisite(kode, body.kode, kind, log)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)


@router.post(f"{API_PREFIX}/courses/{{kode}}/prereq")
def api_course_add_prereq(kode: str, body: RequisiteBody, admin: dict = Depends(require_admin)):
    return _add_requisite(kode, body, "prereq", admin)


@router.post(f"{API_PREFIX}/courses/{{kode}}/coreq")
def api_course_add_coreq(kode: str, body: RequisiteBody, admin: dict = Depends(require_admin)):
    return _add_requisite(kode, body, "coreq", admin)
