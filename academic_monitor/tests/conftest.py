import os
import sys
import sqlite3
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

# Secrets and throttling for the whole test session
os.environ["APP_ENV"] = "test"
os.environ["AUTH_SECRET"] = "test-secret-key-for-hs256-signing-32b"
os.environ["WORKER_TOKEN"] = "test-worker-token"
os.environ["WORKER_MIN_DELAY_MS"] = "0"
os.environ["WORKER_JITTER_MS"] = "0"
os.environ.pop("AI_BASE_URL", None)


@pytest.fixture(scope="session")
def tmp_db_path(tmp_path_factory):
    path = tmp_path_factory.mktemp("db") / "academic_test.db"
    # Point the app to this temp DB
    os.environ["ACADEMIC_DB_PATH"] = str(path)
    # Initialize schema
    schema = Path(_PROJECT_ROOT / "schema.sql").read_text(encoding="utf-8")
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(schema)
        conn.commit()
    finally:
        conn.close()
    from academic_monitor.logs import ensure_log_schema
    ensure_log_schema()
    return str(path)


@pytest.fixture()
def client(tmp_db_path):
    # Ensure schemas required by logging/config exist before creating client
    from academic_monitor.logs import ensure_log_schema
    from academic_monitor.services.config_svc import ensure_default_config
    ensure_log_schema()
    ensure_default_config()
    # Import app after DB ready so startup hooks can use it
    from academic_monitor.api import app
    from fastapi.testclient import TestClient
    app.dependency_overrides.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _clean_db(tmp_db_path):
    # Clean tables before each test for isolation
    # Safety: ensure we only ever wipe the temp DB, never a real one
    assert os.environ.get("ACADEMIC_DB_PATH") == tmp_db_path, "Refusing to clean non-temp DB"
    tables = [
        "ai_jobs",
        "advice",
        "ml_features",
        "enrollments",
        "course_prereq",
        "course_coreq",
        "courses",
        "semesters",
        "students",
        "auth_session",
        "app_user",
        "config",
        "operation_log",
    ]
    conn = sqlite3.connect(tmp_db_path)
    try:
        for t in tables:
            conn.execute(f"DELETE FROM {t}")
        conn.commit()
    finally:
        conn.close()
    yield


@pytest.fixture()
def admin_headers(client):
    from academic_monitor.tests.factories import make_admin
    make_admin(password="admin-pass-123")
    r = client.post("/api/1.0/auth/login", json={"nim": "admin", "password": "admin-pass-123"})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture()
def login_as(client):
    """Returns a function nim -> auth headers for a student account (password 123456)."""
    from academic_monitor.tests.factories import make_student_account

    def _login(nim: str, password: str = "123456") -> dict:
        make_student_account(nim, password=password)
        r = client.post("/api/1.0/auth/login", json={"nim": nim, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login


@pytest.fixture()
def dummy_provider():
    from academic_monitor.tests.factories import DummyProvider
    return DummyProvider()
