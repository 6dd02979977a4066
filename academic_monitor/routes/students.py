from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ..logs import LogContext
from ..services.course_map_svc import build_course_map, build_prereq_map
from ..services.student_svc import (
    create_student,
    delete_student,
    get_student,
    search_students,
    student_chart,
    student_overview,
    student_statistic,
    student_transcript,
    update_student,
)
from .deps import API_PREFIX, require_admin, student_access, to_http

router = APIRouter()


class StudentSearchBody(BaseModel):
    prodi: str | None = None
    search: str | None = None
    angkatan: int | None = None
    page: int | None = 1
    pageSize: int | None = 20
    sortBy: str | None = "nim"
    sortDir: str | None = "asc"


class StudentCreateBody(BaseModel):
    nim: str
    nama: str
    prodi: str | None = None
    angkatan: int | None = None


class StudentUpdateBody(BaseModel):
    nim: str | None = None
    nama: str | None = None
    prodi: str | None = None
    angkatan: int | None = None


@router.get(f"{API_PREFIX}/students")
def api_students_list(
    prodi: str | None = None,
    search: str | None = None,
    angkatan: str | None = None,
    page: str | None = "1",
    page_size: str | None = Query("20", alias="pageSize"),
    sort_by: str | None = Query("nim", alias="sortBy"),
    sort_dir: str | None = Query("asc", alias="sortDir"),
    admin: dict = Depends(require_admin),
):
    return search_students(prodi, search, angkatan, page, page_size, sort_by, sort_dir)


@router.post(f"{API_PREFIX}/students/search")
def api_students_search(body: StudentSearchBody, admin: dict = Depends(require_admin)):
    return search_students(body.prodi, body.search, body.angkatan, body.page, body.pageSize, body.sortBy, body.sortDir)


@router.post(f"{API_PREFIX}/students", status_code=201)
def api_student_create(body: StudentCreateBody, admin: dict = Depends(require_admin)):
    log = LogContext("STUDENT_CREATE", user=admin["email"])
    log.set_payload(body.dict())
    try:
        out = create_student(body.nim, body.nama, body.prodi, body.angkatan, log)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)


@router.get(f"{API_PREFIX}/students/{{student_id}}")
def api_student_get(student_id: str, user: dict = Depends(student_access)):
    try:
        return get_student(student_id)
    except Exception as e:
        raise to_http(e)


@router.patch(f"{API_PREFIX}/students/{{student_id}}")
def api_student_update(student_id: str, body: StudentUpdateBody, admin: dict = Depends(require_admin)):
    log = LogContext("STUDENT_UPDATE", user=admin["email"])
    fields = {k: v for k, v in body.dict().items() if v is not None}
    log.set_payload(fields)
    try:
        out = update_student(student_id, fields, log)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)


@router.delete(f"{API_PREFIX}/students/{{student_id}}")
def api_student_delete(student_id: str, admin: dict = Depends(require_admin)):
    log = LogContext("STUDENT_DELETE", user=admin["email"])
    try:
        delete_student(student_id, log)
        log.write("OK")
        return {"message": "ok"}
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)


@router.get(f"{API_PREFIX}/students/{{student_id}}/overview")
def api_student_overview(student_id: str, user: dict = Depends(student_access)):
    return student_overview(student_id)


@router.get(f"{API_PREFIX}/students/{{student_id}}/transcript")
def api_student_transcript(
    student_id: str,
    semester_no: str | None = None,
    search: str | None = None,
    user: dict = Depends(student_access),
):
    return student_transcript(student_id, semester_no, search)


@router.get(f"{API_PREFIX}/students/{{student_id}}/statistic")
def api_student_statistic(student_id: str, semester: str = "", user: dict = Depends(student_access)):
    try:
        return student_statistic(student_id, semester)
    except Exception as e:
        raise to_http(e)


@router.get(f"{API_PREFIX}/students/{{student_id}}/statistic/chart")
def api_student_chart(student_id: str, semester_no: str | None = None, user: dict = Depends(student_access)):
    try:
        return student_chart(student_id, semester_no)
    except Exception as e:
        raise to_http(e)


@router.get(f"{API_PREFIX}/students/{{student_id}}/courses-map")
def api_student_course_map(student_id: str, user: dict = Depends(student_access)):
    try:
        return build_course_map(student_id)
    except Exception as e:
        raise to_http(e)


@router.get(f"{API_PREFIX}/students/{{student_id}}/prereq-map")
def api_student_prereq_map(student_id: str, user: dict = Depends(student_access)):
    try:
        return build_prereq_map(student_id)
    except Exception as e:
        raise to_http(e)
