from __future__ import annotations

from sqlite3 import Connection


def get_cumulative(conn: Connection, student_id: str):
    return conn.execute(
        "SELECT gpa_cum, sks_total, sks_lulus FROM cumulative_stats WHERE student_id=?",
        (student_id,),
    ).fetchone()


def list_semester_scores(conn: Connection, student_id: str):
    return conn.execute(
        "SELECT semester_id, semester_no, ips FROM v_student_semester_scores "
        "WHERE student_id=? ORDER BY semester_no ASC",
        (student_id,),
    ).fetchall()


def list_cumulative_series(conn: Connection, student_id: str):
    return conn.execute(
        "SELECT semester_id, semester_no, ip_semester, ipk_cum FROM v_student_cumulative "
        "WHERE student_id=? ORDER BY semester_no ASC",
        (student_id,),
    ).fetchall()


def get_last_cumulative(conn: Connection, student_id: str):
    return conn.execute(
        "SELECT semester_no, ip_semester, ipk_cum FROM v_student_cumulative "
        "WHERE student_id=? ORDER BY semester_no DESC LIMIT 1",
        (student_id,),
    ).fetchone()


def get_semester_ips(conn: Connection, student_id: str, semester_id: str):
    return conn.execute(
        "SELECT ips, sks FROM semester_stats WHERE student_id=? AND semester_id=?",
        (student_id, semester_id),
    ).fetchone()


def list_grade_distribution(conn: Connection, student_id: str, term_no: int | None = None):
    sql = (
        "SELECT semester_no, dist_a, dist_ab, dist_b, dist_bc, dist_c, dist_d, dist_e "
        "FROM v_student_grade_distribution WHERE student_id=?"
    )
    params: list = [student_id]
    if term_no is not None:
        sql += " AND semester_no=?"
        params.append(int(term_no))
    sql += " ORDER BY semester_no ASC"
    return conn.execute(sql, params).fetchall()
