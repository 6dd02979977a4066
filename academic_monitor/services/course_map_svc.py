from __future__ import annotations

# academic_monitor/services/course_map_svc.py
from ..db import get_conn
from ..domain.errors import NotFoundError
from ..domain.grading import (
    BELUM_LULUS,
    FAILING_GRADES,
    KELULUSAN_VALUES,
    LULUS,
    PASSING_GRADES,
    better_status,
    grade_rank,
    normalize_grade,
    passed_by_grade,
)
from ..repository import course_repo, enrollment_repo, student_repo

CURRICULUM_ID = "KUR-FTE"
CURRICULUM_VERSION = 1

# (semester_plan, slot count, sks per slot)
ELECTIVE_LAYOUT = (
    (7, 4, 3),
    (8, 2, 3),
)

# min_index shown for a course without one
MAP_DEFAULT_MIN_INDEX = "D"


def _requisites(edges, id_to_course: dict, target_col: str, other_col: str) -> dict[str, list[dict]]:
    """kode (upper) -> [{code, name}] of non-elective requisites."""
    out: dict[str, list[dict]] = {}
    for e in edges:
        target = id_to_course.get(e[target_col])
        other = id_to_course.get(e[other_col])
        if not target or not other or other["mk_pilihan"]:
            continue
        out.setdefault(target["kode"].upper(), []).append({"code": other["kode"], "name": other["nama"]})
    for items in out.values():
        items.sort(key=lambda x: x["name"])
    return out


def _regular_node(c: dict, status: str, prereq: list, coreq: list) -> dict:
    return {
        "code": c["kode"],
        "name": c["nama"],
        "sks": int(c["sks"] or 0),
        "semester_plan": c["semester_no"],
        "prereq": prereq,
        "corereq": coreq,
        "kelulusan": status,
        "mk_pilihan": False,
        "min_index": c["min_index"],
        "attributes": {"kategori": "Wajib"},
    }


def _elective_node(code: str, name: str, sks: int, semester: int, status: str) -> dict:
    return {
        "code": code,
        "name": name,
        "sks": sks,
        "semester_plan": semester,
        "prereq": [],
        "corereq": [],
        "kelulusan": status,
        "mk_pilihan": True,
        "attributes": {"kategori": "Pilihan"},
    }


def fill_elective_slots(taken: list[dict]) -> list[dict]:
    """
    Place taken electives into the fixed slot layout.

    `taken` items are {code, name, status}; they are sorted by name and fill the
    slots in layout order. Slots left over become MK_PILIHAN{n} placeholders,
    with n running across the whole layout.
    """
    queue = sorted(taken, key=lambda t: t["name"])
    nodes = []
    n = 0
    for semester, count, sks in ELECTIVE_LAYOUT:
        for _ in range(count):
            n += 1
            if n <= len(queue):
                item = queue[n - 1]
                nodes.append(_elective_node(item["code"], item["name"], sks, semester, item["status"]))
            else:
                nodes.append(_elective_node(f"MK_PILIHAN{n}", f"Mata Kuliah Pilihan #{n}", sks, semester, BELUM_LULUS))
    return nodes


def build_course_map(student_id: str) -> dict:
    with get_conn() as conn:
        if not student_repo.get_one(conn, student_id):
            raise NotFoundError("Student not found")
        courses = []
        for r in course_repo.list_courses(conn):
            c = dict(r)
            c["min_index"] = normalize_grade(c["min_index"]) or MAP_DEFAULT_MIN_INDEX
            c["mk_pilihan"] = bool(c["mk_pilihan"])
            courses.append(c)
        enr = enrollment_repo.list_final_for_student(conn, student_id)
        prereq_edges = course_repo.list_prereq_edges(conn)
        coreq_edges = course_repo.list_coreq_edges(conn)

    id_to_course = {c["id"]: c for c in courses}

    status_by_course: dict[str, str] = {}
    best_grade: dict[str, str] = {}
    for row in enr:
        cid = row["course_id"]
        k = row["kelulusan"]
        if k in KELULUSAN_VALUES and better_status(status_by_course.get(cid), k):
            status_by_course[cid] = k
        g = normalize_grade(row["grade_index"])
        if g and grade_rank(g) > grade_rank(best_grade.get(cid)):
            best_grade[cid] = g

    prereqs = _requisites(prereq_edges, id_to_course, "course_id", "prereq_course_id")
    coreqs = _requisites(coreq_edges, id_to_course, "course_id", "coreq_course_id")

    regular = []
    for c in courses:
        if c["mk_pilihan"]:
            continue
        status = status_by_course.get(c["id"])
        if not status:
            status = LULUS if passed_by_grade(best_grade.get(c["id"]), c["min_index"]) else BELUM_LULUS
        key = c["kode"].upper()
        regular.append(_regular_node(c, status, prereqs.get(key, []), coreqs.get(key, [])))

    taken: dict[str, dict] = {}
    for row in enr:
        course = id_to_course.get(row["course_id"])
        if not course or not course["mk_pilihan"]:
            continue
        status = row["kelulusan"] if row["kelulusan"] in KELULUSAN_VALUES else BELUM_LULUS
        key = course["kode"].upper()
        prev = taken.get(key)
        if better_status(prev["status"] if prev else None, status):
            taken[key] = {"code": course["kode"], "name": course["nama"], "status": status}

    return {
        "curriculum_id": CURRICULUM_ID,
        "version": CURRICULUM_VERSION,
        "meta": {
            "name": "Course Map",
            "note": "Kelulusan 3-status + MK Pilihan fixed layout (slot berurutan)",
        },
        "nodes": regular + fill_elective_slots(list(taken.values())),
    }


def build_prereq_map(student_id: str) -> dict:
    """Prerequisite graph with a per-course status for the student."""
    with get_conn() as conn:
        if not student_repo.get_one(conn, student_id):
            raise NotFoundError("Student not found")
        courses = course_repo.list_courses(conn)
        edges = course_repo.list_prereq_edges(conn)
        enr = enrollment_repo.list_all_for_student(conn, student_id)

    passed, failed, current = set(), set(), set()
    for e in enr:
        g = normalize_grade(e["grade_index"])
        if g in PASSING_GRADES:
            passed.add(e["course_id"])
        elif g in FAILING_GRADES:
            failed.add(e["course_id"])
        if e["is_current"]:
            current.add(e["course_id"])

    def _status(cid: str) -> str:
        if cid in passed:
            return "passed"
        if cid in failed:
            return "failed"
        if cid in current:
            return "current"
        return "none"

    nodes = [
        {"id": c["id"], "data": {"label": f"{c['nama']} ({c['sks']} SKS)"}, "status": _status(c["id"])}
        for c in courses
    ]
    links = [{"source": e["prereq_course_id"], "target": e["course_id"]} for e in edges]
    return {"nodes": nodes, "links": links}
