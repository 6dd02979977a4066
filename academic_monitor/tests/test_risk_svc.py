import json

import pytest

from academic_monitor.db import get_conn
from academic_monitor.domain.errors import NotFoundError, UpstreamError
from academic_monitor.logs import LogContext
from academic_monitor.repository import risk_repo
from academic_monitor.services.risk_svc import (
    HIGH,
    LOW,
    MED,
    analyze_student,
    get_latest_risk,
    map_risk_cluster,
    map_risk_level,
)
from academic_monitor.tests.factories import DummyProvider, add_grade, make_course, make_student


@pytest.mark.parametrize(
    "label,level",
    [
        ("Risiko Tinggi", HIGH),
        ("risiko tinggi sekali", HIGH),
        ("Tinggi-Sedang", HIGH),
        ("Risiko Sedang", MED),
        ("Risiko Rendah", LOW),
        ("", LOW),
        (None, LOW),
    ],
)
def test_map_risk_level(label, level):
    assert map_risk_level(label) == level


def test_cluster_follows_level():
    assert map_risk_cluster("Risiko Tinggi") == 2
    assert map_risk_cluster("Risiko Sedang") == 1
    assert map_risk_cluster("Risiko Rendah") == 0


def _student_with_grades():
    sid = make_student()
    c1 = make_course("EL1101", "Kalkulus I")
    c2 = make_course("EL1203", "Kalkulus II")
    add_grade(sid, c1, 1, "2021/2022", "B")
    add_grade(sid, c2, 2, "2021/2022", "D")
    return sid


def test_analyze_persists_summary_and_advice(tmp_db_path):
    sid = _student_with_grades()
    provider = DummyProvider(prediction="Risiko Tinggi",
                             probabilities={"Risiko Rendah": 0.05, "Risiko Tinggi": 0.8, "Risiko Sedang": 0.15})
    out = analyze_student(sid, provider, LogContext("TEST"))

    assert provider.calls[0][0] == "predict"
    assert provider.calls[0][1] == out["feat"]
    assert out["ai"]["prediction"] == "Risiko Tinggi"
    assert out["meta"]["semester_id"]

    with get_conn() as conn:
        ml = conn.execute("SELECT * FROM ml_features WHERE student_id=?", (sid,)).fetchall()
        adv = conn.execute("SELECT * FROM advice WHERE student_id=?", (sid,)).fetchall()
    assert len(ml) == 1 and len(adv) == 1
    assert ml[0]["risk_level"] == HIGH
    assert ml[0]["cluster_label"] == 2
    assert ml[0]["mk_gagal_total"] == 1
    assert ml[0]["sks_tunda"] == 3
    assert ml[0]["pct_d"] == 0 and ml[0]["distance"] == 0

    reasons = json.loads(adv[0]["reasons_json"])
    assert reasons["source_label"] == "Risiko Tinggi"
    assert [k for k, _ in reasons["probabilities"]] == ["Risiko Tinggi", "Risiko Sedang", "Risiko Rendah"]
    assert json.loads(adv[0]["actions_json"]) == {"info": "To be generated by separate logic"}


def test_analyze_twice_keeps_one_row_per_term(tmp_db_path):
    sid = _student_with_grades()
    analyze_student(sid, DummyProvider(prediction="Risiko Rendah"), LogContext("TEST"))
    analyze_student(sid, DummyProvider(prediction="Risiko Sedang"), LogContext("TEST"))

    with get_conn() as conn:
        ml = conn.execute("SELECT risk_level FROM ml_features WHERE student_id=?", (sid,)).fetchall()
        adv = conn.execute("SELECT risk_level FROM advice WHERE student_id=?", (sid,)).fetchall()
    assert [r["risk_level"] for r in ml] == [MED]
    assert [r["risk_level"] for r in adv] == [MED]


def test_analyze_without_grades_uses_empty_term_key(tmp_db_path):
    sid = make_student()
    out = analyze_student(sid, DummyProvider(), LogContext("TEST"))
    assert out["meta"]["semester_id"] is None
    with get_conn() as conn:
        row = conn.execute("SELECT semester_id FROM advice WHERE student_id=?", (sid,)).fetchone()
    assert row["semester_id"] == ""


def test_upstream_failure_writes_nothing(tmp_db_path):
    sid = _student_with_grades()
    provider = DummyProvider(error=UpstreamError("AI service error (503): busy", upstream_status=503))
    with pytest.raises(UpstreamError):
        analyze_student(sid, provider, LogContext("TEST"))
    with get_conn() as conn:
        assert conn.execute("SELECT COUNT(1) FROM ml_features").fetchone()[0] == 0
        assert conn.execute("SELECT COUNT(1) FROM advice").fetchone()[0] == 0


def test_malformed_probabilities_write_nothing(tmp_db_path):
    sid = _student_with_grades()
    provider = DummyProvider(prediction="Risiko Tinggi", probabilities={"Risiko Tinggi": "0.8", "Risiko Rendah": 0.2})
    with pytest.raises(UpstreamError):
        analyze_student(sid, provider, LogContext("TEST"))
    with get_conn() as conn:
        assert conn.execute("SELECT COUNT(1) FROM ml_features").fetchone()[0] == 0
        assert conn.execute("SELECT COUNT(1) FROM advice").fetchone()[0] == 0


def test_failed_advice_write_rolls_back_summary(tmp_db_path, monkeypatch):
    sid = _student_with_grades()

    def broken_upsert(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(risk_repo, "upsert_advice", broken_upsert)
    with pytest.raises(RuntimeError):
        analyze_student(sid, DummyProvider(), LogContext("TEST"))
    with get_conn() as conn:
        assert conn.execute("SELECT COUNT(1) FROM ml_features").fetchone()[0] == 0


def test_unknown_student(tmp_db_path):
    provider = DummyProvider()
    with pytest.raises(NotFoundError):
        analyze_student("00000000-0000-0000-0000-000000000000", provider, LogContext("TEST"))
    assert provider.calls == []


def test_latest_risk(tmp_db_path):
    sid = _student_with_grades()
    assert get_latest_risk(sid) == {"found": False}

    analyze_student(sid, DummyProvider(prediction="Risiko Sedang"), LogContext("TEST"))
    out = get_latest_risk(sid)
    assert out["found"] is True
    assert out["ai"]["prediction"] == "Risiko Sedang"
    assert out["ai"]["risk_level"] == MED
    assert out["ai"]["probabilities"] == {"Risiko Rendah": 0.1, "Risiko Sedang": 0.6, "Risiko Tinggi": 0.3}
    assert out["ml"]["risk_level"] == MED
    assert out["meta"]["semester_id"]
