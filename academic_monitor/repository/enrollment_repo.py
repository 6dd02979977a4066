from __future__ import annotations

from sqlite3 import Connection


def upsert_enrollment(
    conn: Connection,
    student_id: str,
    course_id: str,
    semester_id: str,
    grade_index: str,
    sks: int,
    kelulusan: str,
    status: str = "FINAL",
) -> None:
    conn.execute(
        "INSERT INTO enrollments(student_id, course_id, semester_id, grade_index, sks, status, kelulusan, is_current) "
        "VALUES(?,?,?,?,?,?,?,0) "
        "ON CONFLICT(student_id, course_id, semester_id) DO UPDATE SET "
        "grade_index=excluded.grade_index, sks=excluded.sks, status=excluded.status, "
        "kelulusan=excluded.kelulusan, is_current=0, updated_at=datetime('now')",
        (student_id, course_id, semester_id, grade_index, int(sks), status, kelulusan),
    )


def list_failed_by_grade(conn: Connection, student_id: str, grades: tuple[str, ...]):
    placeholders = ",".join(["?"] * len(grades))
    return conn.execute(
        f"SELECT course_id, sks FROM enrollments WHERE student_id=? AND grade_index IN ({placeholders})",
        (student_id, *grades),
    ).fetchall()


def list_final_for_student(conn: Connection, student_id: str):
    return conn.execute(
        "SELECT course_id, grade_index, kelulusan FROM enrollments WHERE student_id=? AND status='FINAL'",
        (student_id,),
    ).fetchall()


def list_all_for_student(conn: Connection, student_id: str):
    return conn.execute(
        "SELECT course_id, grade_index, is_current FROM enrollments WHERE student_id=?",
        (student_id,),
    ).fetchall()


def list_final_with_course(conn: Connection, student_id: str, kelulusan: str):
    """FINAL rows with the given kelulusan joined to their course."""
    return conn.execute(
        "SELECT e.sks, c.kode, c.mk_pilihan FROM enrollments e "
        "JOIN courses c ON c.id = e.course_id "
        "WHERE e.student_id=? AND e.status='FINAL' AND e.kelulusan=?",
        (student_id, kelulusan),
    ).fetchall()


def list_grades(conn: Connection, student_id: str):
    return conn.execute("SELECT grade_index FROM enrollments WHERE student_id=?", (student_id,)).fetchall()


def list_transcript(conn: Connection, student_id: str, term_no: int | None, search: str | None):
    sql = (
        "SELECT t.term_no AS semester_no, t.grade_index, t.kelulusan, c.kode, c.nama, c.sks "
        "FROM v_enrollment_terms t JOIN courses c ON c.id = t.course_id "
        "WHERE t.student_id = :sid"
    )
    params: dict = {"sid": student_id}
    if term_no:
        sql = f"SELECT * FROM ({sql}) WHERE semester_no = :term"
        params["term"] = int(term_no)
    if search:
        sql = f"SELECT * FROM ({sql}) WHERE nama LIKE :q"
        params["q"] = f"%{search}%"
    sql += " ORDER BY semester_no ASC, kode ASC"
    return conn.execute(sql, params).fetchall()
