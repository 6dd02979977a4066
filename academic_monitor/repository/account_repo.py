from __future__ import annotations

from sqlite3 import Connection


def get_by_id(conn: Connection, user_id: str):
    return conn.execute(
        "SELECT id, email, password_hash, role, nim, full_name FROM app_user WHERE id=?",
        (user_id,),
    ).fetchone()


def get_by_email(conn: Connection, email: str):
    return conn.execute(
        "SELECT id, email, password_hash, role, nim, full_name FROM app_user WHERE lower(email)=lower(?)",
        (email,),
    ).fetchone()


def insert_user(
    conn: Connection,
    user_id: str,
    email: str,
    password_hash: str,
    role: str,
    nim: str | None,
    full_name: str | None,
) -> None:
    conn.execute(
        "INSERT INTO app_user(id, email, password_hash, role, nim, full_name) VALUES(?,?,?,?,?,?)",
        (user_id, email, password_hash, role, nim, full_name),
    )


def update_password(conn: Connection, user_id: str, password_hash: str) -> None:
    conn.execute(
        "UPDATE app_user SET password_hash=?, updated_at=datetime('now') WHERE id=?",
        (password_hash, user_id),
    )


def update_role(conn: Connection, user_id: str, role: str) -> None:
    conn.execute("UPDATE app_user SET role=?, updated_at=datetime('now') WHERE id=?", (role, user_id))


def insert_session(conn: Connection, session_id: str, user_id: str, issued_at: str, expires_at: str) -> None:
    conn.execute(
        "INSERT INTO auth_session(id, user_id, issued_at, expires_at) VALUES(?,?,?,?)",
        (session_id, user_id, issued_at, expires_at),
    )


def get_session(conn: Connection, session_id: str):
    return conn.execute(
        "SELECT id, user_id, issued_at, expires_at, revoked FROM auth_session WHERE id=?",
        (session_id,),
    ).fetchone()


def revoke_sessions_for_user(conn: Connection, user_id: str, keep_session_id: str | None = None) -> int:
    if keep_session_id:
        cur = conn.execute(
            "UPDATE auth_session SET revoked=1 WHERE user_id=? AND revoked=0 AND id<>?",
            (user_id, keep_session_id),
        )
    else:
        cur = conn.execute("UPDATE auth_session SET revoked=1 WHERE user_id=? AND revoked=0", (user_id,))
    return int(cur.rowcount or 0)
