from __future__ import annotations

# academic_monitor/services/recommend_svc.py
import logging

from ..db import get_conn
from ..domain.errors import NotFoundError
from ..domain.grading import LULUS, TIDAK_LULUS
from ..providers.ai_provider import AIProviderPort
from ..repository import enrollment_repo, stats_repo, student_repo
from .utils import to_float_safe, to_int_safe

logger = logging.getLogger(__name__)


def _current_semester(conn, student_id: str) -> tuple[int, float]:
    """(last term + 1, IPS of the last term); a student with no grades is in term 1."""
    last = stats_repo.get_last_cumulative(conn, student_id)
    if not last:
        return 1, 0.0
    return (to_int_safe(last["semester_no"], 0) or 0) + 1, to_float_safe(last["ip_semester"], 0.0)


def _require_student(conn, student_id: str) -> None:
    if not student_repo.get_one(conn, student_id):
        raise NotFoundError("Student not found")


def build_recommend_payload(conn, student_id: str) -> dict:
    current_semester, _ = _current_semester(conn, student_id)
    passed = enrollment_repo.list_final_with_course(conn, student_id, LULUS)
    failed = enrollment_repo.list_final_with_course(conn, student_id, TIDAK_LULUS)

    regular, electives = set(), set()
    for r in passed:
        kode = (r["kode"] or "").strip()
        if not kode:
            continue
        (electives if r["mk_pilihan"] else regular).add(kode)

    # the model only knows elective slots, not the concrete codes
    courses_passed = sorted(regular) + [f"MK_PILIHAN{i}" for i in range(1, len(electives) + 1)]
    mk_pilihan_failed = sorted({(r["kode"] or "").strip() for r in failed if r["mk_pilihan"]} - {""})
    return {
        "current_semester": current_semester,
        "courses_passed": courses_passed,
        "mk_pilihan_failed": mk_pilihan_failed,
    }


def build_graduation_payload(conn, student_id: str) -> dict:
    current_semester, ips_last = _current_semester(conn, student_id)
    passed = enrollment_repo.list_final_with_course(conn, student_id, LULUS)
    total_sks = 0
    codes: list[str] = []
    for r in passed:
        total_sks += to_int_safe(r["sks"], 0) or 0
        kode = (r["kode"] or "").strip()
        if kode and kode not in codes:
            codes.append(kode)
    return {
        "current_semester": current_semester,
        "total_sks_passed": total_sks,
        "ipk_last_semester": ips_last,
        "courses_passed": codes,
    }


def recommend_courses(student_id: str, provider: AIProviderPort) -> list:
    with get_conn() as conn:
        _require_student(conn, student_id)
        payload = build_recommend_payload(conn, student_id)
    logger.debug(
        "recommend payload for %s: semester=%s passed=%d failed_electives=%d",
        student_id, payload["current_semester"], len(payload["courses_passed"]), len(payload["mk_pilihan_failed"]),
    )
    return provider.recommend(payload)


def predict_graduation(student_id: str, provider: AIProviderPort) -> dict:
    with get_conn() as conn:
        _require_student(conn, student_id)
        payload = build_graduation_payload(conn, student_id)
    logger.debug("graduation payload for %s: %s", student_id, payload)
    return provider.predict_graduation(payload)
