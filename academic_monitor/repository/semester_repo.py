from __future__ import annotations

import uuid
from sqlite3 import Connection


def get_id(conn: Connection, nomor: int, tahun_ajaran: str) -> str | None:
    row = conn.execute(
        "SELECT id FROM semesters WHERE nomor=? AND tahun_ajaran=?",
        (int(nomor), tahun_ajaran),
    ).fetchone()
    return row["id"] if row else None


def get_or_create(conn: Connection, nomor: int, tahun_ajaran: str) -> str:
    conn.execute(
        "INSERT INTO semesters(id, nomor, tahun_ajaran) VALUES(?,?,?) "
        "ON CONFLICT(nomor, tahun_ajaran) DO NOTHING",
        (str(uuid.uuid4()), int(nomor), tahun_ajaran),
    )
    return get_id(conn, nomor, tahun_ajaran)


def get_one(conn: Connection, semester_id: str):
    return conn.execute(
        "SELECT id, nomor, tahun_ajaran, is_active FROM semesters WHERE id=?",
        (semester_id,),
    ).fetchone()


def set_active(conn: Connection, semester_id: str) -> None:
    conn.execute("UPDATE semesters SET is_active = CASE WHEN id=? THEN 1 ELSE 0 END", (semester_id,))


def get_active(conn: Connection):
    return conn.execute(
        "SELECT id, nomor, tahun_ajaran, is_active FROM semesters WHERE is_active=1 LIMIT 1"
    ).fetchone()
