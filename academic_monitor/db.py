from __future__ import annotations

# academic_monitor/db.py
import sqlite3
from contextlib import contextmanager
from typing import Iterator
import os
import yaml

# DB path resolution order:
# 1) env ACADEMIC_DB_PATH (highest priority)
# 2) config.yaml test_db_path (when running under tests)
# 3) config.yaml db_path (production default)
# 4) fallback: academic.db in the project root
_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "academic.db")
SCHEMA_PATH = os.path.join(_PROJECT_ROOT, "schema.sql")


def read_config_yaml() -> dict:
    cfg_path = os.environ.get("ACADEMIC_CONFIG") or os.path.join(_PROJECT_ROOT, "config.yaml")
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return cfg if isinstance(cfg, dict) else {}


def get_db_path(_: str | None = None) -> str:
    env_path = os.environ.get("ACADEMIC_DB_PATH")
    cfg = read_config_yaml()
    cfg_db = cfg.get("db_path") if isinstance(cfg.get("db_path"), str) else None
    cfg_test = cfg.get("test_db_path") if isinstance(cfg.get("test_db_path"), str) else None
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)

    if env_path:
        path = env_path
    elif is_test and cfg_test:
        path = cfg_test.strip()
    elif cfg_db:
        path = cfg_db.strip()
    else:
        path = _ROOT_DB

    dirn = os.path.dirname(path) or "."
    os.makedirs(dirn, exist_ok=True)
    return path


@contextmanager
def get_conn(db_path: str | None = None) -> Iterator[sqlite3.Connection]:
    """
    Open a SQLite connection. An explicit db_path wins over get_db_path().
    Foreign keys are on and rows come back as sqlite3.Row.
    """
    path = db_path or get_db_path()
    conn = sqlite3.connect(
        path,
        detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        check_same_thread=False,
        isolation_level=None,
    )
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.row_factory = sqlite3.Row
        yield conn
    finally:
        conn.close()


def ensure_schema(db_path: str | None = None):
    with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
        ddl = f.read()
    with get_conn(db_path) as conn:
        conn.executescript(ddl)
