from __future__ import annotations

# academic_monitor/services/student_svc.py
import math
import sqlite3
import uuid

import pandas as pd

from ..db import get_conn
from ..domain.errors import ConflictError, NotFoundError, SemesterFormatError
from ..domain.grading import GRADE_ORDER, UPLOAD_GRADES
from ..logs import LogContext
from ..repository import enrollment_repo, risk_repo, semester_repo, stats_repo, student_repo
from .config_svc import get_config
from .utils import (
    is_valid_semester_format,
    parse_pagination,
    parse_semester,
    parse_sorting,
    semester_label,
    to_float_safe,
    to_int_safe,
)


def _nan_to_none(v):
    return None if pd.isna(v) else float(v)


# ---------- records ----------

def search_students(prodi=None, search=None, angkatan=None, page=1, page_size=20, sort_by="nim", sort_dir="asc") -> dict:
    p, size, offset = parse_pagination(page, page_size, default_page=1, default_size=20, max_size=100)
    field, direction = parse_sorting(sort_by, sort_dir, student_repo.SORTABLE, "nim", "asc")
    prodi = (prodi or "").strip() or None
    search = (search or "").strip() or None
    ang = to_int_safe(angkatan)
    ang = ang if ang and ang > 0 else None
    with get_conn() as conn:
        total, rows = student_repo.search(conn, prodi, search, ang, field, direction, size, offset)
    return {
        "items": [dict(r) for r in rows],
        "page": p,
        "pageSize": size,
        "total": total,
        "sortBy": field,
        "sortDir": direction,
        "filters": {"prodi": prodi, "search": search, "angkatan": ang},
    }


def get_student(student_id: str) -> dict:
    with get_conn() as conn:
        row = student_repo.get_one(conn, student_id)
    if not row:
        raise NotFoundError("Not Found")
    return dict(row)


def create_student(nim: str, nama: str, prodi: str | None, angkatan: int | None, log: LogContext) -> dict:
    nim = (nim or "").strip()
    nama = (nama or "").strip()
    if not nim or not nama:
        raise ValueError("nim dan nama wajib diisi")
    sid = str(uuid.uuid4())
    with get_conn() as conn:
        if student_repo.get_by_nim(conn, nim):
            raise ConflictError(f"NIM {nim} sudah terdaftar")
        student_repo.insert_student(conn, sid, nim, nama, prodi, angkatan)
        row = dict(student_repo.get_one(conn, sid))
    log.set_entity("STUDENT", sid)
    log.set_after(row)
    return row


def update_student(student_id: str, fields: dict, log: LogContext) -> dict:
    with get_conn() as conn:
        before = student_repo.get_one(conn, student_id)
        if not before:
            raise NotFoundError("Not Found")
        try:
            student_repo.update_student(conn, student_id, fields)
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"NIM sudah terdaftar: {e}") from e
        after = dict(student_repo.get_one(conn, student_id))
    log.set_entity("STUDENT", student_id)
    log.set_before(dict(before))
    log.set_after(after)
    return after


def delete_student(student_id: str, log: LogContext) -> None:
    with get_conn() as conn:
        before = student_repo.get_one(conn, student_id)
        if not before:
            raise NotFoundError("Not Found")
        student_repo.delete_student(conn, student_id)
    log.set_entity("STUDENT", student_id)
    log.set_before(dict(before))


# ---------- dashboards ----------

def student_overview(student_id: str) -> dict:
    """IPS trend, cumulative IPK, grade counts A..E and the latest risk bucket."""
    with get_conn() as conn:
        trend = stats_repo.list_semester_scores(conn, student_id)
        cum = stats_repo.list_cumulative_series(conn, student_id)
        grades = enrollment_repo.list_grades(conn, student_id)
        ml = risk_repo.get_latest_ml_features(conn, student_id)

    counts = pd.Series([r["grade_index"] for r in grades], dtype="object").value_counts()
    return {
        "trend": [{"semester_no": r["semester_no"], "ips": r["ips"]} for r in trend],
        "cum": [{"semester_no": r["semester_no"], "ipk_cum": r["ipk_cum"]} for r in cum],
        "dist": [{"grade_index": g, "count": int(counts.get(g, 0))} for g in UPLOAD_GRADES],
        "risk_level": (ml["risk_level"] if ml and ml["risk_level"] else "LOW"),
    }


def student_transcript(student_id: str, semester_no=None, search: str | None = None) -> list[dict]:
    term = to_int_safe(semester_no, 0)
    search = (search or "").strip() or None
    with get_conn() as conn:
        rows = enrollment_repo.list_transcript(conn, student_id, term if term and term > 0 else None, search)
    return [
        {
            "semester_no": r["semester_no"],
            "kode": r["kode"] or "",
            "nama": r["nama"] or "",
            "sks": int(r["sks"] or 0),
            "nilai": (r["grade_index"].strip() if isinstance(r["grade_index"], str) else r["grade_index"]),
            "status": r["kelulusan"] or "",
        }
        for r in rows
    ]


def student_statistic(student_id: str, semester: str) -> dict:
    """Term IPS, cumulative IPK and credit progress for 'Ganjil|Genap YYYY/YYYY'."""
    if not is_valid_semester_format(semester):
        raise SemesterFormatError("Format semester harus 'Ganjil YYYY/YYYY' atau 'Genap YYYY/YYYY'.")
    nomor, tahun = parse_semester(semester)
    total_sks = get_config()["target_sks"]
    with get_conn() as conn:
        semester_id = semester_repo.get_id(conn, nomor, tahun)
        term = stats_repo.get_semester_ips(conn, student_id, semester_id) if semester_id else None
        cum = stats_repo.get_cumulative(conn, student_id)

    sks_selesai = to_int_safe(cum["sks_lulus"], 0) if cum else 0
    return {
        "semester": semester_label(nomor, tahun),
        "ips": to_float_safe(term["ips"]) if term else None,
        "ipk": to_float_safe(cum["gpa_cum"]) if cum else None,
        "total_sks": total_sks,
        "sks_selesai": sks_selesai,
        "sks_tersisa": max(0, total_sks - sks_selesai),
    }


def _parse_chart_term(raw) -> int | None:
    """'' or 'ALL' -> None (all terms); a positive integer -> that term."""
    s = str(raw if raw is not None else "").strip()
    if s == "" or s.upper() == "ALL":
        return None
    n = to_float_safe(s)
    if n is None or math.isnan(n) or math.isinf(n) or n < 1 or n != int(n):
        raise ValueError("Invalid semester_no")
    return int(n)


def student_chart(student_id: str, semester_no=None) -> dict:
    term = _parse_chart_term(semester_no)
    with get_conn() as conn:
        ips_rows = stats_repo.list_semester_scores(conn, student_id)
        cum_rows = stats_repo.list_cumulative_series(conn, student_id)
        dist_rows = stats_repo.list_grade_distribution(conn, student_id, term)

    ips = pd.DataFrame([{"semester_no": r["semester_no"], "ips": r["ips"]} for r in ips_rows], columns=["semester_no", "ips"])
    cum = pd.DataFrame([{"semester_no": r["semester_no"], "ipk": r["ipk_cum"]} for r in cum_rows], columns=["semester_no", "ipk"])
    line_df = ips.merge(cum, on="semester_no", how="outer").sort_values("semester_no")
    line = {
        "categories": [int(x) for x in line_df["semester_no"]],
        "series": [
            {"name": "IPK", "data": [_nan_to_none(v) for v in line_df["ipk"]]},
            {"name": "IPS", "data": [_nan_to_none(v) for v in line_df["ips"]]},
        ],
    }

    pie = {"labels": list(GRADE_ORDER), "series": [], "selected_semester_no": term if term is not None else "ALL"}
    if dist_rows:
        cols = ["dist_" + g.lower() for g in GRADE_ORDER]
        totals = pd.DataFrame([dict(r) for r in dist_rows])[cols].fillna(0).sum()
        pie["series"] = [int(totals[c]) for c in cols]
    return {"line": line, "pie": pie}
