import pytest

from academic_monitor.db import get_conn
from academic_monitor.domain.errors import NotFoundError
from academic_monitor.domain.grading import BELUM_LULUS, LULUS, TIDAK_LULUS
from academic_monitor.repository import course_repo
from academic_monitor.services.course_map_svc import build_course_map, build_prereq_map, fill_elective_slots
from academic_monitor.tests.factories import add_grade, make_course, make_student


class TestElectiveSlots:

    def test_empty_layout_is_all_placeholders(self):
        nodes = fill_elective_slots([])
        assert [n["code"] for n in nodes] == [f"MK_PILIHAN{i}" for i in range(1, 7)]
        assert [n["semester_plan"] for n in nodes] == [7, 7, 7, 7, 8, 8]
        assert all(n["sks"] == 3 and n["kelulusan"] == BELUM_LULUS and n["mk_pilihan"] for n in nodes)
        assert nodes[5]["name"] == "Mata Kuliah Pilihan #6"

    def test_taken_sorted_by_name_fill_first_slots(self):
        taken = [
            {"code": "EL4192", "name": "Radar", "status": TIDAK_LULUS},
            {"code": "EL4191", "name": "Antena", "status": LULUS},
        ]
        nodes = fill_elective_slots(taken)
        assert [n["code"] for n in nodes[:3]] == ["EL4191", "EL4192", "MK_PILIHAN3"]
        assert nodes[0]["kelulusan"] == LULUS
        assert nodes[1]["kelulusan"] == TIDAK_LULUS

    def test_fifth_elective_goes_to_semester_eight(self):
        taken = [{"code": f"EL49{i}", "name": f"Pilihan {i}", "status": LULUS} for i in range(5)]
        nodes = fill_elective_slots(taken)
        assert nodes[4]["code"] == "EL494"
        assert nodes[4]["semester_plan"] == 8
        assert nodes[5]["code"] == "MK_PILIHAN6"


def _nodes_by_code(out):
    return {n["code"]: n for n in out["nodes"]}


def test_course_map_status_and_requisites(tmp_db_path):
    sid = make_student()
    calc1 = make_course("EL1101", "Kalkulus I", semester_no=1)
    phys = make_course("EL1102", "Fisika Dasar", semester_no=1)
    calc2 = make_course("EL1203", "Kalkulus II", semester_no=2)
    lab = make_course("EL1204", "Praktikum Fisika", sks=1, semester_no=2, min_index=None)
    make_course("EL2101", "Matematika Diskrit", semester_no=3)
    elective = make_course("EL4191", "Radar", mk_pilihan=True)
    with get_conn() as conn:
        # listed by name: Fisika Dasar before Kalkulus I
        course_repo.add_prereq(conn, calc2, calc1)
        course_repo.add_prereq(conn, calc2, phys)
        course_repo.add_prereq(conn, calc2, elective)
        course_repo.add_coreq(conn, lab, phys)

    # failed then passed: the better status wins
    add_grade(sid, calc1, 1, "2021/2022", "E")
    add_grade(sid, calc1, 1, "2022/2023", "B")
    add_grade(sid, phys, 1, "2021/2022", "D")
    # no kelulusan recorded: fall back to grade vs min_index (default D on the map)
    add_grade(sid, lab, 2, "2021/2022", "D", sks=1, kelulusan=None)
    add_grade(sid, elective, 2, "2021/2022", "A")

    out = build_course_map(sid)
    assert out["curriculum_id"] == "KUR-FTE"
    assert out["version"] == 1
    assert out["meta"]["name"] == "Course Map"

    nodes = _nodes_by_code(out)
    assert nodes["EL1101"]["kelulusan"] == LULUS
    assert nodes["EL1102"]["kelulusan"] == TIDAK_LULUS
    assert nodes["EL1204"]["kelulusan"] == LULUS
    assert nodes["EL1204"]["min_index"] == "D"
    assert nodes["EL1203"]["kelulusan"] == BELUM_LULUS
    assert nodes["EL2101"]["kelulusan"] == BELUM_LULUS

    assert nodes["EL1203"]["prereq"] == [
        {"code": "EL1102", "name": "Fisika Dasar"},
        {"code": "EL1101", "name": "Kalkulus I"},
    ]
    assert nodes["EL1204"]["corereq"] == [{"code": "EL1102", "name": "Fisika Dasar"}]
    assert nodes["EL1101"]["attributes"] == {"kategori": "Wajib"}

    # electives never appear as regular nodes, only through the slot layout
    assert nodes["EL4191"]["mk_pilihan"] is True
    assert nodes["EL4191"]["semester_plan"] == 7
    assert nodes["EL4191"]["kelulusan"] == LULUS
    regular = [n for n in out["nodes"] if not n["mk_pilihan"]]
    electives = [n for n in out["nodes"] if n["mk_pilihan"]]
    assert len(regular) == 5
    assert len(electives) == 6


def test_course_map_unknown_student(tmp_db_path):
    with pytest.raises(NotFoundError):
        build_course_map("00000000-0000-0000-0000-000000000000")


def test_prereq_map(tmp_db_path):
    sid = make_student()
    a = make_course("EL1101", "Kalkulus I", semester_no=1)
    b = make_course("EL1203", "Kalkulus II", sks=4, semester_no=2)
    c = make_course("EL2101", "Matematika Diskrit", semester_no=3)
    d = make_course("EL2102", "Sinyal dan Sistem", semester_no=3)
    with get_conn() as conn:
        course_repo.add_prereq(conn, b, a)
    add_grade(sid, a, 1, "2021/2022", "A")
    add_grade(sid, b, 2, "2021/2022", "E", sks=4)
    add_grade(sid, c, 1, "2022/2023", None, is_current=True)

    out = build_prereq_map(sid)
    status = {n["id"]: n["status"] for n in out["nodes"]}
    assert status == {a: "passed", b: "failed", c: "current", d: "none"}
    labels = {n["id"]: n["data"]["label"] for n in out["nodes"]}
    assert labels[b] == "Kalkulus II (4 SKS)"
    assert out["links"] == [{"source": a, "target": b}]


def test_course_map_electives_fill_slots_by_name_not_by_term(tmp_db_path):
    sid = make_student()
    satellite = make_course("EL4193", "Telekomunikasi Satelit", mk_pilihan=True)
    antenna = make_course("EL4191", "Antena", mk_pilihan=True)
    add_grade(sid, satellite, 1, "2021/2022", "B")
    add_grade(sid, antenna, 2, "2023/2024", "A")

    electives = [n for n in build_course_map(sid)["nodes"] if n["mk_pilihan"]]
    assert [n["code"] for n in electives[:3]] == ["EL4191", "EL4193", "MK_PILIHAN3"]
    assert [n["semester_plan"] for n in electives[:2]] == [7, 7]
