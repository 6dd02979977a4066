from __future__ import annotations

from sqlite3 import Connection
from typing import Dict, Iterable


def list_courses(conn: Connection):
    """Curriculum order: semester_no (NULLs first) then kode."""
    return conn.execute(
        "SELECT id, kode, nama, sks, mk_pilihan, min_index, semester_no FROM courses "
        "ORDER BY semester_no IS NOT NULL, semester_no ASC, kode ASC"
    ).fetchall()


def get_one(conn: Connection, course_id: str):
    return conn.execute(
        "SELECT id, kode, nama, sks, mk_pilihan, min_index, semester_no FROM courses WHERE id=?",
        (course_id,),
    ).fetchone()


def get_by_kode(conn: Connection, kode: str):
    return conn.execute(
        "SELECT id, kode, nama, sks, mk_pilihan, min_index, semester_no FROM courses WHERE kode=?",
        (kode,),
    ).fetchone()


def map_for_kodes(conn: Connection, kodes: Iterable[str]) -> Dict[str, dict]:
    kodes = list(kodes)
    if not kodes:
        return {}
    q = "SELECT id, kode, min_index FROM courses WHERE kode IN ({})".format(",".join(["?"] * len(kodes)))
    return {r["kode"]: dict(r) for r in conn.execute(q, kodes).fetchall()}


def insert_course(
    conn: Connection,
    course_id: str,
    kode: str,
    nama: str,
    sks: int,
    mk_pilihan: bool,
    min_index: str | None,
    semester_no: int | None,
) -> None:
    conn.execute(
        "INSERT INTO courses(id, kode, nama, sks, mk_pilihan, min_index, semester_no) VALUES(?,?,?,?,?,?,?)",
        (course_id, kode, nama, int(sks), 1 if mk_pilihan else 0, min_index, semester_no),
    )


def update_course(conn: Connection, course_id: str, fields: dict) -> int:
    allowed = [k for k in ("kode", "nama", "sks", "mk_pilihan", "min_index", "semester_no") if k in fields]
    if not allowed:
        return 0
    params = {k: fields[k] for k in allowed}
    if "mk_pilihan" in params:
        params["mk_pilihan"] = 1 if params["mk_pilihan"] else 0
    sets = ", ".join(f"{k}=:{k}" for k in allowed)
    cur = conn.execute(f"UPDATE courses SET {sets} WHERE id=:id", {**params, "id": course_id})
    return int(cur.rowcount or 0)


def list_prereq_edges(conn: Connection):
    return conn.execute("SELECT course_id, prereq_course_id FROM course_prereq").fetchall()


def list_coreq_edges(conn: Connection):
    return conn.execute("SELECT course_id, coreq_course_id FROM course_coreq").fetchall()


def add_prereq(conn: Connection, course_id: str, prereq_course_id: str) -> None:
    conn.execute(
        "INSERT OR IGNORE INTO course_prereq(course_id, prereq_course_id) VALUES(?,?)",
        (course_id, prereq_course_id),
    )


def add_coreq(conn: Connection, course_id: str, coreq_course_id: str) -> None:
    conn.execute(
        "INSERT OR IGNORE INTO course_coreq(course_id, coreq_course_id) VALUES(?,?)",
        (course_id, coreq_course_id),
    )
