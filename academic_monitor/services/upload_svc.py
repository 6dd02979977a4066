from __future__ import annotations

# academic_monitor/services/upload_svc.py
import datetime as dt
import io
import logging

import pandas as pd

from ..db import get_conn
from ..domain.errors import ValidationError
from ..domain.grading import UPLOAD_GRADES, kelulusan_for
from ..logs import LogContext
from ..repository import course_repo, enrollment_repo, job_repo, semester_repo, student_repo
from .utils import to_int_safe

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ("nim", "kode", "semester_no", "tahun_ajaran", "grade_index", "sks")
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
SAMPLE_LIMIT = 5


def utc_now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def check_upload(filename: str | None, size: int) -> None:
    if not filename:
        raise ValidationError("No file uploaded")
    if not filename.lower().endswith(".csv"):
        raise ValidationError("File must be .csv")
    if size > MAX_UPLOAD_BYTES:
        raise ValidationError("File too large (max 5MB)")


def parse_grades_csv(content: bytes) -> pd.DataFrame:
    """
    Read and normalize the grade sheet.

    Columns: nim,kode,semester_no,tahun_ajaran,grade_index,sks. Every cell is read
    as text and stripped; grade_index is upper-cased. Raises ValidationError on a
    missing header, on grades outside A..E and on a semester_no other than 1/2.
    """
    header_msg = "CSV headers must be: " + ",".join(REQUIRED_HEADERS)
    try:
        df = pd.read_csv(io.BytesIO(content), dtype=str, skip_blank_lines=True, keep_default_na=False)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise ValidationError(header_msg) from e

    df.columns = [str(c).strip() for c in df.columns]
    if df.empty or not all(h in df.columns for h in REQUIRED_HEADERS):
        raise ValidationError(header_msg)

    df = df[list(REQUIRED_HEADERS)].apply(lambda col: col.str.strip())
    df["grade_index"] = df["grade_index"].str.upper()

    bad_grade = df[~df["grade_index"].isin(UPLOAD_GRADES)]
    if len(bad_grade):
        raise ValidationError(
            f"Found invalid grade_index in {len(bad_grade)} row(s). Allowed: {','.join(UPLOAD_GRADES)}",
            bad_grade.head(SAMPLE_LIMIT).to_dict(orient="records"),
        )

    df["semester_no"] = df["semester_no"].map(to_int_safe)
    bad_sem = df[~df["semester_no"].isin([1, 2])]
    if len(bad_sem):
        raise ValidationError(
            f"Found invalid semester_no in {len(bad_sem)} row(s). Allowed: 1 (Ganjil), 2 (Genap)",
            bad_sem.head(SAMPLE_LIMIT).astype(str).to_dict(orient="records"),
        )

    df["sks"] = df["sks"].map(lambda v: to_int_safe(v, 0))
    return df


def _sample(r) -> dict:
    return {
        "nim": r.nim,
        "kode": r.kode,
        "semester_no": int(r.semester_no),
        "tahun_ajaran": r.tahun_ajaran,
        "grade_index": r.grade_index,
        "sks": int(r.sks),
    }


def import_grades(content: bytes, log: LogContext) -> dict:
    """Upsert enrollments from a grade CSV and queue affected students for analysis."""
    df = parse_grades_csv(content)
    parsed = len(df)
    log.set_payload({"parsed": parsed})

    missing_students, missing_courses = [], []
    affected: set[str] = set()
    inserted = 0

    with get_conn() as conn:
        students = student_repo.id_map_for_nims(conn, df["nim"].unique())
        courses = course_repo.map_for_kodes(conn, df["kode"].unique())

        conn.execute("BEGIN TRANSACTION")
        try:
            sem_ids = {
                (int(no), ta): semester_repo.get_or_create(conn, int(no), ta)
                for no, ta in df[["semester_no", "tahun_ajaran"]].drop_duplicates().itertuples(index=False)
            }
            for r in df.itertuples(index=False):
                sid = students.get(r.nim)
                if not sid:
                    missing_students.append(_sample(r))
                    continue
                course = courses.get(r.kode)
                if not course:
                    missing_courses.append(_sample(r))
                    continue
                enrollment_repo.upsert_enrollment(
                    conn,
                    sid,
                    course["id"],
                    sem_ids[(int(r.semester_no), r.tahun_ajaran)],
                    r.grade_index,
                    r.sks,
                    kelulusan_for(r.grade_index, course["min_index"]),
                )
                inserted += 1
                affected.add(sid)

            now = utc_now_iso()
            for sid in sorted(affected):
                job_repo.enqueue(conn, sid, now)
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    logger.info("grade import: parsed=%d inserted=%d queued=%d", parsed, inserted, len(affected))
    out = {
        "ok": True,
        "parsed": parsed,
        "inserted": inserted,
        "queued": len(affected),
        "skipped_students": len(missing_students),
        "skipped_courses": len(missing_courses),
        "samples": {
            "missing_students": missing_students[:SAMPLE_LIMIT],
            "missing_courses": missing_courses[:SAMPLE_LIMIT],
        },
    }
    log.set_after({k: v for k, v in out.items() if k != "samples"})
    return out
