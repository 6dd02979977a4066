import pytest

from academic_monitor.db import get_conn
from academic_monitor.domain.errors import NotFoundError
from academic_monitor.services.recommend_svc import (
    build_graduation_payload,
    build_recommend_payload,
    predict_graduation,
    recommend_courses,
)
from academic_monitor.tests.factories import DummyProvider, add_grade, make_course, make_student


@pytest.fixture()
def student(tmp_db_path):
    sid = make_student()
    c1 = make_course("EL2102", "Sinyal dan Sistem")
    c2 = make_course("EL1101", "Kalkulus I")
    c3 = make_course("EL2205", "Elektronika", sks=4)
    e1 = make_course("EL4191", "Kriptografi", mk_pilihan=True)
    e2 = make_course("EL4192", "Radar", mk_pilihan=True)
    e3 = make_course("EL4193", "Antena Lanjut", mk_pilihan=True)
    add_grade(sid, c1, 1, "2021/2022", "A")
    add_grade(sid, c2, 1, "2021/2022", "B")
    add_grade(sid, e1, 1, "2021/2022", "AB")
    add_grade(sid, c3, 2, "2021/2022", "E", sks=4)
    add_grade(sid, e2, 2, "2021/2022", "D")
    add_grade(sid, e3, 2, "2021/2022", "C")
    return sid


def test_recommend_payload(student):
    with get_conn() as conn:
        payload = build_recommend_payload(conn, student)
    assert payload == {
        "current_semester": 3,
        "courses_passed": ["EL1101", "EL2102", "MK_PILIHAN1", "MK_PILIHAN2"],
        "mk_pilihan_failed": ["EL4192"],
    }


def test_graduation_payload(student):
    with get_conn() as conn:
        payload = build_graduation_payload(conn, student)
    assert payload["current_semester"] == 3
    # passed: EL2102, EL1101, EL4191, EL4193 at 3 sks each
    assert payload["total_sks_passed"] == 12
    # term 2: E@4 (0) + D@3 (3) + C@3 (6) = 9 / 10
    assert payload["ipk_last_semester"] == pytest.approx(0.9)
    assert sorted(payload["courses_passed"]) == ["EL1101", "EL2102", "EL4191", "EL4193"]
    assert len(payload["courses_passed"]) == len(set(payload["courses_passed"]))


def test_student_without_grades_is_in_first_term(tmp_db_path):
    sid = make_student()
    with get_conn() as conn:
        assert build_recommend_payload(conn, sid) == {
            "current_semester": 1, "courses_passed": [], "mk_pilihan_failed": [],
        }
        g = build_graduation_payload(conn, sid)
    assert g == {"current_semester": 1, "total_sks_passed": 0, "ipk_last_semester": 0.0, "courses_passed": []}


def test_recommend_and_graduation_pass_through_provider(student):
    provider = DummyProvider(recommend=[{"kode": "EL3101", "nama": "Medan Elektromagnetik"}],
                             graduation={"predicted_semester": 9, "on_time": False})
    assert recommend_courses(student, provider) == [{"kode": "EL3101", "nama": "Medan Elektromagnetik"}]
    assert predict_graduation(student, provider) == {"predicted_semester": 9, "on_time": False}
    assert [c[0] for c in provider.calls] == ["recommend", "predict_graduation"]
    assert provider.calls[0][1]["current_semester"] == 3


def test_unknown_student_never_reaches_provider(tmp_db_path):
    provider = DummyProvider()
    with pytest.raises(NotFoundError):
        recommend_courses("00000000-0000-0000-0000-000000000000", provider)
    with pytest.raises(NotFoundError):
        predict_graduation("00000000-0000-0000-0000-000000000000", provider)
    assert provider.calls == []
