# academic_monitor/services/config_svc.py
import os

from ..db import get_conn, read_config_yaml
from ..logs import LogContext
from .utils import to_float_safe, to_int_safe

DEFAULTS = {
    "target_sks": "144",
    "campus_email_domain": "campus.ac.id",
    "default_password": "123456",
    "token_ttl_minutes": "720",
    "ai_base_url": "",
    "ai_timeout_sec": "10",
    "ai_long_timeout_sec": "15",
    "worker_batch_limit": "100",
    "worker_min_delay_ms": "350",
    "worker_jitter_ms": "100",
    "worker_base_backoff_sec": "30",
    "worker_max_backoff_min": "60",
}

# env var -> config key; env always wins over the config table
ENV_OVERRIDES = {
    "AI_BASE_URL": "ai_base_url",
    "CAMPUS_EMAIL_DOMAIN": "campus_email_domain",
    "WORKER_BATCH_LIMIT": "worker_batch_limit",
    "WORKER_MIN_DELAY_MS": "worker_min_delay_ms",
    "WORKER_JITTER_MS": "worker_jitter_ms",
    "WORKER_BASE_BACKOFF_SEC": "worker_base_backoff_sec",
    "WORKER_MAX_BACKOFF_MIN": "worker_max_backoff_min",
}

# never stored in the config table
SECRET_KEYS = ("auth_secret", "worker_token")

def ensure_default_config():
    """Insert missing keys without touching existing values."""
    with get_conn() as conn:
        for k, v in DEFAULTS.items():
            conn.execute(
                "INSERT INTO config(key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO NOTHING",
                (k, v),
            )

def _raw_config() -> dict:
    with get_conn() as conn:
        rows = conn.execute("SELECT key, value FROM config").fetchall()
    cfg = dict(DEFAULTS)
    yaml_cfg = read_config_yaml()
    for k in DEFAULTS:
        if k in yaml_cfg and yaml_cfg[k] is not None:
            cfg[k] = str(yaml_cfg[k])
    cfg.update({r["key"]: r["value"] for r in rows})
    for env_key, cfg_key in ENV_OVERRIDES.items():
        v = os.environ.get(env_key)
        if v is not None and v.strip():
            cfg[cfg_key] = v.strip()
    return cfg

def get_config() -> dict:
    cfg = _raw_config()

    return {
        "target_sks": to_int_safe(cfg.get("target_sks"), 144),
        "campus_email_domain": cfg.get("campus_email_domain") or DEFAULTS["campus_email_domain"],
        "default_password": cfg.get("default_password") or DEFAULTS["default_password"],
        "token_ttl_minutes": to_int_safe(cfg.get("token_ttl_minutes"), 720),
        "ai_base_url": (cfg.get("ai_base_url") or "").strip(),
        "ai_timeout_sec": to_float_safe(cfg.get("ai_timeout_sec"), 10.0),
        "ai_long_timeout_sec": to_float_safe(cfg.get("ai_long_timeout_sec"), 15.0),
        "worker_batch_limit": to_int_safe(cfg.get("worker_batch_limit"), 100),
        "worker_min_delay_ms": to_int_safe(cfg.get("worker_min_delay_ms"), 350),
        "worker_jitter_ms": to_int_safe(cfg.get("worker_jitter_ms"), 100),
        "worker_base_backoff_sec": to_int_safe(cfg.get("worker_base_backoff_sec"), 30),
        "worker_max_backoff_min": to_int_safe(cfg.get("worker_max_backoff_min"), 60),
    }

def get_secret(name: str) -> str:
    """Secrets only come from the environment (AUTH_SECRET, WORKER_TOKEN)."""
    return (os.environ.get(name.upper()) or "").strip()

def update_config(upd: dict, log: LogContext) -> list[str]:
    updated = []
    with get_conn() as conn:
        before = {r["key"]: r["value"] for r in conn.execute("SELECT key,value FROM config")}
        for k, v in upd.items():
            if k in SECRET_KEYS:
                raise ValueError(f"secret_not_configurable: {k}")
            if k not in DEFAULTS:
                raise ValueError(f"unknown_config_key: {k}")
            conn.execute(
                "INSERT INTO config(key,value) VALUES(?,?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (k, str(v))
            )
            updated.append(k)
        after = {r["key"]: r["value"] for r in conn.execute("SELECT key,value FROM config")}
    log.set_before(before); log.set_after(after)
    return updated
