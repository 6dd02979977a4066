from __future__ import annotations

# academic_monitor/services/feature_svc.py
from sqlite3 import Connection
from typing import Iterable

from ..db import get_conn
from ..domain.grading import FAILING_GRADES
from ..repository import enrollment_repo, stats_repo
from .config_svc import get_config
from .utils import to_float_safe

TREND_THRESHOLD = 0.01

MENAIK = "Menaik"
MENURUN = "Menurun"
STABIL = "Stabil"


def calculate_slope(points: Iterable[tuple[float, float]]) -> float:
    """
    Ordinary least squares slope over (x, y) points:
        m = (n*Σxy - Σx*Σy) / (n*Σx² - (Σx)²)
    Returns 0.0 with fewer than two points or when the denominator is zero.
    """
    pts = list(points)
    n = len(pts)
    if n < 2:
        return 0.0
    sum_x = sum_y = sum_xy = sum_x2 = 0.0
    for x, y in pts:
        sum_x += x
        sum_y += y
        sum_xy += x * y
        sum_x2 += x * x
    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def trend_profile(slope: float) -> str:
    if slope > TREND_THRESHOLD:
        return MENAIK
    if slope < -TREND_THRESHOLD:
        return MENURUN
    return STABIL


def _extract(conn: Connection, student_id: str, target_sks: int) -> dict:
    cum = stats_repo.get_cumulative(conn, student_id)
    terms = stats_repo.list_semester_scores(conn, student_id)
    failed = enrollment_repo.list_failed_by_grade(conn, student_id, FAILING_GRADES)

    # a term without an IPS counts as 0
    ips_vals = [to_float_safe(r["ips"], 0.0) for r in terms]
    points = [
        (float(r["semester_no"]), float(r["ips"]))
        for r in terms
        if r["semester_no"] is not None and r["ips"] is not None
    ]

    ipk_terakhir = to_float_safe(cum["gpa_cum"], 0.0) if cum else 0.0
    total_sks = to_float_safe(cum["sks_total"], 0.0) if cum else 0.0
    ips_terakhir = ips_vals[-1] if ips_vals else 0.0
    ips_tertinggi = max(ips_vals) if ips_vals else 0.0
    ips_terendah = min(ips_vals) if ips_vals else 0.0

    slope = calculate_slope(points)

    features = {
        "IPK_Terakhir": ipk_terakhir,
        "IPS_Terakhir": ips_terakhir,
        "Total_SKS": total_sks,
        "IPS_Tertinggi": ips_tertinggi,
        "IPS_Terendah": ips_terendah,
        "Rentang_IPS": ips_tertinggi - ips_terendah,
        "Jumlah_MK_Gagal": len(failed),
        "Total_SKS_Gagal": sum(int(r["sks"] or 0) for r in failed),
        "Tren_IPS_Slope": slope,
        "Profil_Tren": trend_profile(slope),
        "Perubahan_Kinerja_Terakhir": ips_terakhir - ipk_terakhir,
        "IPK_Ternormalisasi_SKS": (total_sks / target_sks) * ipk_terakhir if total_sks and target_sks else 0.0,
    }
    meta = {
        "semester_id": terms[-1]["semester_id"] if terms else None,
        "delta_ips": (ips_vals[-1] - ips_vals[-2]) if len(ips_vals) >= 2 else 0.0,
        "semester_count": len(terms),
    }
    return {"feat": features, "meta": meta}


def extract_features(student_id: str, conn: Connection | None = None) -> dict:
    """
    Build the model input for one student.

    Returns {"feat": {...}, "meta": {"semester_id", "delta_ips", "semester_count"}}.
    The feat keys are sent verbatim to the prediction service.
    """
    target_sks = get_config()["target_sks"]
    if conn is not None:
        return _extract(conn, student_id, target_sks)
    with get_conn() as c:
        return _extract(c, student_id, target_sks)
