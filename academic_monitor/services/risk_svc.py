from __future__ import annotations

# academic_monitor/services/risk_svc.py
import json
import logging
from typing import Any

from ..db import get_conn
from ..domain.errors import NotFoundError
from ..logs import LogContext
from ..providers.ai_provider import AIProviderPort, check_prediction
from ..repository import risk_repo, student_repo
from .feature_svc import extract_features

logger = logging.getLogger(__name__)

HIGH, MED, LOW = "HIGH", "MED", "LOW"


def map_risk_level(label: str | None) -> str:
    """Collapse the model's free-text label to HIGH/MED/LOW ('tinggi' wins over 'sedang')."""
    low = (label or "").lower()
    if "tinggi" in low:
        return HIGH
    if "sedang" in low:
        return MED
    return LOW


def map_risk_cluster(label: str | None) -> int:
    return {HIGH: 2, MED: 1, LOW: 0}[map_risk_level(label)]


def _sorted_probabilities(probs: Any) -> list[list] | None:
    if not isinstance(probs, dict):
        return None
    return [[k, v] for k, v in sorted(probs.items(), key=lambda kv: -(kv[1] or 0))]


def persist_prediction(conn, student_id: str, extracted: dict, ai: dict) -> dict | None:
    """Upsert ml_features + advice for (student, latest term) in one transaction. Returns advice meta."""
    conn.execute("BEGIN TRANSACTION")
    try:
        row = _upsert_rows(conn, student_id, extracted, ai)
        conn.execute("COMMIT")
    except Exception:
        conn.execute("ROLLBACK")
        raise
    if not row:
        return None
    return {"semester_id": row["semester_id"] or None, "created_at": row["created_at"]}


def _upsert_rows(conn, student_id: str, extracted: dict, ai: dict):
    feat = extracted["feat"]
    meta = extracted["meta"]
    semester_id = meta.get("semester_id")
    label = ai.get("prediction")
    risk_level = map_risk_level(label)

    risk_repo.upsert_ml_features(
        conn,
        {
            "student_id": student_id,
            "semester_id": semester_id,
            "gpa_cum": feat.get("IPK_Terakhir"),
            "ips_last": feat.get("IPS_Terakhir"),
            "delta_ips": meta.get("delta_ips"),
            "mk_gagal_total": feat.get("Jumlah_MK_Gagal"),
            "sks_tunda": feat.get("Total_SKS_Gagal"),
            "pct_d": 0,
            "pct_e": 0,
            "repeat_count": 0,
            "mk_prasyarat_gagal": 0,
            "cluster_label": map_risk_cluster(label),
            "risk_level": risk_level,
            "distance": 0,
        },
    )
    reasons: dict = {"source_label": label}
    probs = _sorted_probabilities(ai.get("probabilities"))
    if probs is not None:
        reasons["probabilities"] = probs
    return risk_repo.upsert_advice(
        conn,
        student_id,
        semester_id,
        risk_level,
        reasons,
        {"info": "To be generated by separate logic"},
    )


def analyze_student(student_id: str, provider: AIProviderPort, log: LogContext) -> dict:
    """
    Extract features, ask the prediction service, and store the summary rows.

    Raises NotFoundError for an unknown student and UpstreamError when the
    service fails; both are left to the caller to report.
    """
    log.set_entity("STUDENT", student_id)
    with get_conn() as conn:
        if not student_repo.get_one(conn, student_id):
            raise NotFoundError("Student not found")
        extracted = extract_features(student_id, conn)

    log.set_payload(extracted["feat"])
    ai = check_prediction(provider.predict(extracted["feat"]))

    with get_conn() as conn:
        meta = persist_prediction(conn, student_id, extracted, ai)

    log.set_after({"risk_level": map_risk_level(ai.get("prediction")), "meta": meta})
    return {"feat": extracted["feat"], "ai": ai, "meta": meta}


def get_latest_risk(student_id: str) -> dict:
    with get_conn() as conn:
        adv = risk_repo.get_latest_advice(conn, student_id)
        if not adv:
            return {"found": False}
        semester_id = adv["semester_id"] or None
        if semester_id:
            ml = risk_repo.get_ml_features(conn, student_id, semester_id)
        else:
            ml = risk_repo.get_latest_ml_features(conn, student_id)

    reasons = json.loads(adv["reasons_json"]) if adv["reasons_json"] else {}
    probs = reasons.get("probabilities")
    probabilities = {k: v for k, v in probs} if isinstance(probs, list) else None
    return {
        "found": True,
        "ai": {
            "prediction": reasons.get("source_label") or adv["risk_level"],
            "risk_level": adv["risk_level"],
            "probabilities": probabilities,
        },
        "ml": dict(ml) if ml else None,
        "meta": {"semester_id": semester_id, "created_at": adv["created_at"]},
    }
