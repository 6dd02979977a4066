from __future__ import annotations

from sqlite3 import Connection


def enqueue(conn: Connection, student_id: str, now_iso: str) -> int:
    """Skip students that already have a pending job."""
    row = conn.execute(
        "SELECT id FROM ai_jobs WHERE student_id=? AND status='pending'", (student_id,)
    ).fetchone()
    if row:
        return int(row["id"])
    cur = conn.execute(
        "INSERT INTO ai_jobs(student_id, status, attempts, next_run_at, created_at) VALUES(?, 'pending', 0, ?, ?)",
        (student_id, now_iso, now_iso),
    )
    return int(cur.lastrowid)


def list_due(conn: Connection, now_iso: str, limit: int):
    return conn.execute(
        "SELECT id, student_id, attempts FROM ai_jobs "
        "WHERE status='pending' AND next_run_at <= ? "
        "ORDER BY next_run_at ASC, created_at ASC, id ASC LIMIT ?",
        (now_iso, int(limit)),
    ).fetchall()


def get_one(conn: Connection, job_id: int):
    return conn.execute(
        "SELECT id, student_id, status, attempts, next_run_at, last_error FROM ai_jobs WHERE id=?",
        (job_id,),
    ).fetchone()


def mark_processing(conn: Connection, job_id: int, now_iso: str) -> None:
    conn.execute("UPDATE ai_jobs SET status='processing', updated_at=? WHERE id=?", (now_iso, job_id))


def mark_done(conn: Connection, job_id: int, now_iso: str) -> None:
    conn.execute(
        "UPDATE ai_jobs SET status='done', last_error=NULL, updated_at=? WHERE id=?",
        (now_iso, job_id),
    )


def reschedule(conn: Connection, job_id: int, attempts: int, next_run_iso: str, err: str, now_iso: str) -> None:
    conn.execute(
        "UPDATE ai_jobs SET status='pending', attempts=?, next_run_at=?, last_error=?, updated_at=? WHERE id=?",
        (attempts, next_run_iso, err, now_iso, job_id),
    )


def mark_error(conn: Connection, job_id: int, attempts: int, err: str, now_iso: str) -> None:
    conn.execute(
        "UPDATE ai_jobs SET status='error', attempts=?, last_error=?, updated_at=? WHERE id=?",
        (attempts, err, now_iso, job_id),
    )
