from __future__ import annotations


# Grade letters from best to worst. Ranks mirror grade_scale.rank in schema.sql.
GRADE_ORDER = ("A", "AB", "B", "BC", "C", "D", "E")
GRADE_RANK = {"A": 7, "AB": 6, "B": 5, "BC": 4, "C": 3, "D": 2, "E": 1}
GRADE_POINT = {"A": 4.0, "AB": 3.5, "B": 3.0, "BC": 2.5, "C": 2.0, "D": 1.0, "E": 0.0}

UPLOAD_GRADES = ("A", "B", "C", "D", "E")
FAILING_GRADES = ("D", "E")
PASSING_GRADES = ("A", "AB", "B", "BC", "C")
DEFAULT_MIN_INDEX = "C"

LULUS = "Lulus"
TIDAK_LULUS = "Tidak Lulus"
BELUM_LULUS = "Belum Lulus"
KELULUSAN_VALUES = (LULUS, TIDAK_LULUS, BELUM_LULUS)

_STATUS_RANK = {LULUS: 3, TIDAK_LULUS: 2, BELUM_LULUS: 1}


def normalize_grade(grade: str | None) -> str | None:
    if grade is None:
        return None
    g = str(grade).strip().upper()
    return g or None


def grade_rank(grade: str | None, default: int = -1) -> int:
    g = normalize_grade(grade)
    if g is None:
        return default
    return GRADE_RANK.get(g, default)


def passed_by_grade(grade: str | None, min_index: str | None) -> bool:
    """True when grade ranks at or above the course minimum index."""
    if not normalize_grade(grade) or not normalize_grade(min_index):
        return False
    return grade_rank(grade, -1) >= grade_rank(min_index, 99)


def kelulusan_for(grade: str | None, min_index: str | None = None) -> str:
    return LULUS if passed_by_grade(grade, min_index or DEFAULT_MIN_INDEX) else TIDAK_LULUS


def status_rank(status: str | None) -> int:
    return _STATUS_RANK.get(status or "", 0)


def better_status(prev: str | None, new: str) -> bool:
    return prev is None or status_rank(new) > status_rank(prev)
