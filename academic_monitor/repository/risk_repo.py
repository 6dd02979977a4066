from __future__ import annotations

import json
from sqlite3 import Connection


def upsert_ml_features(conn: Connection, row: dict) -> None:
    """One summary row per (student_id, semester_id); the latest analysis wins."""
    conn.execute(
        "INSERT INTO ml_features(student_id, semester_id, gpa_cum, ips_last, delta_ips, mk_gagal_total, "
        "sks_tunda, pct_d, pct_e, repeat_count, mk_prasyarat_gagal, cluster_label, risk_level, distance) "
        "VALUES(:student_id, :semester_id, :gpa_cum, :ips_last, :delta_ips, :mk_gagal_total, "
        ":sks_tunda, :pct_d, :pct_e, :repeat_count, :mk_prasyarat_gagal, :cluster_label, :risk_level, :distance) "
        "ON CONFLICT(student_id, semester_id) DO UPDATE SET "
        "gpa_cum=excluded.gpa_cum, ips_last=excluded.ips_last, delta_ips=excluded.delta_ips, "
        "mk_gagal_total=excluded.mk_gagal_total, sks_tunda=excluded.sks_tunda, pct_d=excluded.pct_d, "
        "pct_e=excluded.pct_e, repeat_count=excluded.repeat_count, mk_prasyarat_gagal=excluded.mk_prasyarat_gagal, "
        "cluster_label=excluded.cluster_label, risk_level=excluded.risk_level, distance=excluded.distance, "
        "created_at=datetime('now')",
        {**row, "semester_id": row.get("semester_id") or ""},
    )


def upsert_advice(
    conn: Connection,
    student_id: str,
    semester_id: str | None,
    risk_level: str,
    reasons: dict,
    actions: dict,
):
    conn.execute(
        "INSERT INTO advice(student_id, semester_id, risk_level, reasons_json, actions_json) "
        "VALUES(?,?,?,?,?) "
        "ON CONFLICT(student_id, semester_id) DO UPDATE SET "
        "risk_level=excluded.risk_level, reasons_json=excluded.reasons_json, "
        "actions_json=excluded.actions_json, created_at=datetime('now')",
        (
            student_id,
            semester_id or "",
            risk_level,
            json.dumps(reasons, ensure_ascii=False),
            json.dumps(actions, ensure_ascii=False),
        ),
    )
    return conn.execute(
        "SELECT semester_id, created_at FROM advice WHERE student_id=? AND semester_id=?",
        (student_id, semester_id or ""),
    ).fetchone()


def get_latest_advice(conn: Connection, student_id: str):
    return conn.execute(
        "SELECT semester_id, risk_level, reasons_json, actions_json, created_at FROM advice "
        "WHERE student_id=? ORDER BY created_at DESC, id DESC LIMIT 1",
        (student_id,),
    ).fetchone()


def get_ml_features(conn: Connection, student_id: str, semester_id: str | None):
    return conn.execute(
        "SELECT risk_level, cluster_label, delta_ips, ips_last, gpa_cum, created_at FROM ml_features "
        "WHERE student_id=? AND semester_id=?",
        (student_id, semester_id or ""),
    ).fetchone()


def get_latest_ml_features(conn: Connection, student_id: str):
    return conn.execute(
        "SELECT risk_level, cluster_label, delta_ips, ips_last, gpa_cum, created_at FROM ml_features "
        "WHERE student_id=? ORDER BY created_at DESC LIMIT 1",
        (student_id,),
    ).fetchone()
