from __future__ import annotations

# academic_monitor/services/utils.py
import re

_UUID_LIKE = re.compile(r"^[0-9a-fA-F-]{32,36}$")
_SEMESTER_RE = re.compile(r"^ *(Ganjil|Genap) +\d{4}/\d{4} *$", re.IGNORECASE)
_TAHUN_RE = re.compile(r"(\d{4}/\d{4})")


def is_uuid_like(s: str | None) -> bool:
    return bool(s) and bool(_UUID_LIKE.match(s))


def to_float_safe(x, default=None):
    try: return float(x)
    except (TypeError, ValueError): return default


def to_int_safe(x, default=None):
    try: return int(float(x))
    except (TypeError, ValueError, OverflowError): return default


def is_valid_semester_format(v) -> bool:
    return isinstance(v, str) and bool(_SEMESTER_RE.match(v.strip()))


def parse_semester(raw: str) -> tuple[int, str]:
    """'Ganjil 2021/2022' -> (1, '2021/2022'); 'Genap 2021/2022' -> (2, '2021/2022')."""
    s = (raw or "").strip()
    m = _TAHUN_RE.search(s)
    low = s.lower()
    if not m or not (low.startswith("ganjil") or low.startswith("genap")):
        raise ValueError("Format semester tidak valid (contoh: 'Ganjil 2021/2022' atau 'Genap 2021/2022').")
    return (1 if low.startswith("ganjil") else 2), m.group(1)


def semester_label(nomor: int, tahun_ajaran: str) -> str:
    return f"{'Ganjil' if nomor == 1 else 'Genap'} {tahun_ajaran}"


def join_url(base: str, path: str) -> str:
    return f"{(base or '').rstrip('/')}/{(path or '').lstrip('/')}"


def parse_pagination(page_raw, size_raw, default_page: int = 1, default_size: int = 20, max_size: int = 100) -> tuple[int, int, int]:
    """Returns (page, page_size, offset)."""
    page = max(1, to_int_safe(page_raw, default_page))
    size = min(max_size, max(1, to_int_safe(size_raw, default_size)))
    return page, size, (page - 1) * size


def parse_sorting(sort_by_raw, sort_dir_raw, allowed: tuple[str, ...], default_field: str, default_dir: str = "asc") -> tuple[str, str]:
    field = sort_by_raw if isinstance(sort_by_raw, str) and sort_by_raw in allowed else default_field
    direction = "desc" if isinstance(sort_dir_raw, str) and sort_dir_raw.lower() == "desc" else default_dir
    return field, direction
