from __future__ import annotations

from sqlite3 import Connection
from typing import Dict, Iterable

SORTABLE = ("nim", "nama", "prodi", "angkatan")


def get_one(conn: Connection, student_id: str):
    return conn.execute(
        "SELECT id, nim, nama, prodi, angkatan FROM students WHERE id=?",
        (student_id,),
    ).fetchone()


def get_by_nim(conn: Connection, nim: str):
    return conn.execute(
        "SELECT id, nim, nama, prodi, angkatan FROM students WHERE nim=?",
        (nim,),
    ).fetchone()


def owned_by_nim(conn: Connection, student_id: str, nim: str) -> bool:
    row = conn.execute("SELECT 1 FROM students WHERE id=? AND nim=?", (student_id, nim)).fetchone()
    return row is not None


def id_map_for_nims(conn: Connection, nims: Iterable[str]) -> Dict[str, str]:
    nims = list(nims)
    if not nims:
        return {}
    q = "SELECT id, nim FROM students WHERE nim IN ({})".format(",".join(["?"] * len(nims)))
    return {r["nim"]: r["id"] for r in conn.execute(q, nims).fetchall()}


def name_map_for_nims(conn: Connection, nims: Iterable[str]) -> Dict[str, str]:
    nims = list(nims)
    if not nims:
        return {}
    q = "SELECT nim, nama FROM students WHERE nim IN ({})".format(",".join(["?"] * len(nims)))
    return {r["nim"]: (r["nama"] or "") for r in conn.execute(q, nims).fetchall()}


def _search_where(prodi: str | None, search: str | None, angkatan: int | None) -> tuple[str, dict]:
    where = []
    params: dict = {}
    if prodi:
        where.append("prodi LIKE :prodi")
        params["prodi"] = f"%{prodi}%"
    if search:
        where.append("(nama LIKE :q OR nim LIKE :q)")
        params["q"] = f"%{search}%"
    if angkatan:
        where.append("angkatan = :angkatan")
        params["angkatan"] = int(angkatan)
    return (" WHERE " + " AND ".join(where)) if where else "", params


def search(
    conn: Connection,
    prodi: str | None,
    search: str | None,
    angkatan: int | None,
    sort_by: str,
    sort_dir: str,
    limit: int,
    offset: int,
):
    """LIKE is case-insensitive for ASCII in SQLite, same as ilike for NIM/name lookups."""
    if sort_by not in SORTABLE:
        sort_by = "nim"
    direction = "DESC" if sort_dir == "desc" else "ASC"
    wh, params = _search_where(prodi, search, angkatan)
    total = conn.execute(f"SELECT COUNT(1) AS c FROM students{wh}", params).fetchone()["c"]
    rows = conn.execute(
        f"SELECT id, nim, nama, prodi, angkatan FROM students{wh} "
        f"ORDER BY {sort_by} {direction}, nim ASC LIMIT :limit OFFSET :offset",
        {**params, "limit": limit, "offset": offset},
    ).fetchall()
    return int(total), rows


def insert_student(conn: Connection, student_id: str, nim: str, nama: str, prodi: str | None, angkatan: int | None) -> None:
    conn.execute(
        "INSERT INTO students(id, nim, nama, prodi, angkatan) VALUES(?,?,?,?,?)",
        (student_id, nim, nama, prodi, angkatan),
    )


def update_student(conn: Connection, student_id: str, fields: dict) -> int:
    allowed = [k for k in ("nim", "nama", "prodi", "angkatan") if k in fields]
    if not allowed:
        return 0
    sets = ", ".join(f"{k}=:{k}" for k in allowed)
    cur = conn.execute(
        f"UPDATE students SET {sets} WHERE id=:id",
        {**{k: fields[k] for k in allowed}, "id": student_id},
    )
    return int(cur.rowcount or 0)


def delete_student(conn: Connection, student_id: str) -> int:
    cur = conn.execute("DELETE FROM students WHERE id=?", (student_id,))
    return int(cur.rowcount or 0)


def list_ids(conn: Connection) -> list[str]:
    return [r["id"] for r in conn.execute("SELECT id FROM students ORDER BY nim").fetchall()]
