"""
Feature extraction: slope/trend helpers and a full extraction against the DB views.
"""
import pytest

from academic_monitor.services.feature_svc import (
    MENAIK,
    MENURUN,
    STABIL,
    calculate_slope,
    extract_features,
    trend_profile,
)
from academic_monitor.tests.factories import add_grade, make_course, make_student


class TestSlope:

    def test_fewer_than_two_points(self):
        assert calculate_slope([]) == 0.0
        assert calculate_slope([(1, 3.2)]) == 0.0

    def test_constant_x_gives_zero(self):
        assert calculate_slope([(1, 3.0), (1, 2.0)]) == 0.0

    def test_rising_series(self):
        # y = 0.5x + 2
        assert calculate_slope([(1, 2.5), (2, 3.0), (3, 3.5)]) == pytest.approx(0.5)

    def test_trend_threshold(self):
        assert trend_profile(0.02) == MENAIK
        assert trend_profile(-0.02) == MENURUN
        assert trend_profile(0.01) == STABIL
        assert trend_profile(-0.01) == STABIL
        assert trend_profile(0.0) == STABIL


def test_extract_features_two_terms(tmp_db_path):
    sid = make_student()
    k1 = make_course("EL1101", "Kalkulus I")
    k2 = make_course("EL1102", "Fisika Dasar")
    k3 = make_course("EL1203", "Kalkulus II")
    k4 = make_course("EL1204", "Rangkaian Listrik", sks=2)
    # term 1: A, B at 3 sks -> IPS 3.5
    add_grade(sid, k1, 1, "2021/2022", "A")
    add_grade(sid, k2, 1, "2021/2022", "B")
    # term 2: C at 3, E at 2 -> IPS 1.2
    add_grade(sid, k3, 2, "2021/2022", "C")
    add_grade(sid, k4, 2, "2021/2022", "E", sks=2)

    out = extract_features(sid)
    f = out["feat"]
    assert f["IPK_Terakhir"] == pytest.approx(2.45)
    assert f["IPS_Terakhir"] == pytest.approx(1.2)
    assert f["Total_SKS"] == pytest.approx(11)
    assert f["IPS_Tertinggi"] == pytest.approx(3.5)
    assert f["IPS_Terendah"] == pytest.approx(1.2)
    assert f["Rentang_IPS"] == pytest.approx(2.3)
    assert f["Jumlah_MK_Gagal"] == 1
    assert f["Total_SKS_Gagal"] == 2
    assert f["Tren_IPS_Slope"] == pytest.approx(-2.3)
    assert f["Profil_Tren"] == MENURUN
    assert f["Perubahan_Kinerja_Terakhir"] == pytest.approx(-1.25)
    assert f["IPK_Ternormalisasi_SKS"] == pytest.approx(11 / 144 * 2.45)

    meta = out["meta"]
    assert meta["semester_count"] == 2
    assert meta["delta_ips"] == pytest.approx(-2.3)
    assert meta["semester_id"]


def test_term_without_ips_counts_as_zero(tmp_db_path):
    sid = make_student()
    c1 = make_course("EL1101", "Kalkulus I")
    seminar = make_course("EL1299", "Seminar", sks=0)
    add_grade(sid, c1, 1, "2021/2022", "A")
    # a zero-credit term has no IPS
    add_grade(sid, seminar, 2, "2021/2022", "B", sks=0)

    out = extract_features(sid)
    f = out["feat"]
    assert f["IPS_Terakhir"] == 0.0
    assert f["IPS_Tertinggi"] == pytest.approx(4.0)
    assert f["IPS_Terendah"] == 0.0
    assert f["Rentang_IPS"] == pytest.approx(4.0)
    assert f["Tren_IPS_Slope"] == 0.0
    assert out["meta"]["delta_ips"] == pytest.approx(-4.0)
    assert out["meta"]["semester_count"] == 2


def test_extract_features_without_grades(tmp_db_path):
    sid = make_student()
    out = extract_features(sid)
    f = out["feat"]
    assert f["IPK_Terakhir"] == 0.0
    assert f["Total_SKS"] == 0.0
    assert f["Jumlah_MK_Gagal"] == 0
    assert f["Tren_IPS_Slope"] == 0.0
    assert f["Profil_Tren"] == STABIL
    assert f["IPK_Ternormalisasi_SKS"] == 0.0
    assert out["meta"] == {"semester_id": None, "delta_ips": 0.0, "semester_count": 0}
