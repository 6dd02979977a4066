from __future__ import annotations

# academic_monitor/services/course_svc.py
import sqlite3
import uuid

from ..db import get_conn
from ..domain.errors import ConflictError, NotFoundError
from ..domain.grading import GRADE_RANK, normalize_grade
from ..logs import LogContext
from ..repository import course_repo


def _check_min_index(min_index):
    mi = normalize_grade(min_index)
    if mi is not None and mi not in GRADE_RANK:
        raise ValueError(f"min_index tidak valid: {min_index}")
    return mi


def list_courses() -> list[dict]:
    with get_conn() as conn:
        rows = course_repo.list_courses(conn)
    return [{**dict(r), "mk_pilihan": bool(r["mk_pilihan"])} for r in rows]


def create_course(kode: str, nama: str, sks: int, mk_pilihan: bool, min_index: str | None,
                  semester_no: int | None, log: LogContext) -> dict:
    kode = (kode or "").strip()
    nama = (nama or "").strip()
    if not kode or not nama:
        raise ValueError("kode dan nama wajib diisi")
    if sks is None or int(sks) < 0:
        raise ValueError("sks harus >= 0")
    mi = _check_min_index(min_index)
    cid = str(uuid.uuid4())
    with get_conn() as conn:
        if course_repo.get_by_kode(conn, kode):
            raise ConflictError(f"Kode {kode} sudah ada")
        course_repo.insert_course(conn, cid, kode, nama, sks, mk_pilihan, mi, semester_no)
        row = dict(course_repo.get_one(conn, cid))
    log.set_entity("COURSE", cid)
    log.set_after(row)
    return row


def update_course(course_id: str, fields: dict, log: LogContext) -> dict:
    if "min_index" in fields:
        fields = {**fields, "min_index": _check_min_index(fields["min_index"])}
    with get_conn() as conn:
        before = course_repo.get_one(conn, course_id)
        if not before:
            raise NotFoundError("Course not found")
        try:
            course_repo.update_course(conn, course_id, fields)
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Kode sudah ada: {e}") from e
        after = dict(course_repo.get_one(conn, course_id))
    log.set_entity("COURSE", course_id)
    log.set_before(dict(before))
    log.set_after(after)
    return after


def add_requisite(course_kode: str, other_kode: str, kind: str, log: LogContext) -> dict:
    """kind is 'prereq' or 'coreq'; both courses are referenced by kode."""
    if kind not in ("prereq", "coreq"):
        raise ValueError(f"kind tidak valid: {kind}")
    if (course_kode or "").strip().upper() == (other_kode or "").strip().upper():
        raise ValueError("Mata kuliah tidak bisa menjadi syarat dirinya sendiri")
    with get_conn() as conn:
        course = course_repo.get_by_kode(conn, (course_kode or "").strip())
        other = course_repo.get_by_kode(conn, (other_kode or "").strip())
        if not course or not other:
            raise NotFoundError("Course not found")
        if kind == "prereq":
            course_repo.add_prereq(conn, course["id"], other["id"])
        else:
            course_repo.add_coreq(conn, course["id"], other["id"])
    out = {"course": course["kode"], kind: other["kode"]}
    log.set_entity("COURSE", course["id"])
    log.set_after(out)
    return out
