from __future__ import annotations

# academic_monitor/services/worker_svc.py
import datetime as dt
import logging
import random
import time
from typing import Callable

from ..db import get_conn
from ..domain.errors import UpstreamError
from ..providers.ai_provider import AIProviderPort, check_prediction
from ..repository import job_repo
from .config_svc import get_config
from .feature_svc import extract_features
from .risk_svc import persist_prediction

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 5
ERROR_TEXT_LIMIT = 300


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _iso(ts: dt.datetime) -> str:
    return ts.strftime("%Y-%m-%dT%H:%M:%S")


def next_backoff_sec(attempts: int, base_sec: int, max_min: int) -> int:
    """base * 2^(attempts-1) seconds, capped at max_min minutes."""
    return int(min(base_sec * (2 ** max(0, attempts - 1)), max_min * 60))


def is_retryable(exc: Exception) -> bool:
    """Only a definite client error from the AI service (4xx other than 429) is final."""
    if isinstance(exc, UpstreamError) and exc.upstream_status is not None:
        s = exc.upstream_status
        return s == 429 or s >= 500 or s < 400
    return True


def _throttle(cfg: dict, sleep: Callable[[float], None]) -> None:
    delay_ms = cfg["worker_min_delay_ms"] + (random.randint(0, cfg["worker_jitter_ms"]) if cfg["worker_jitter_ms"] > 0 else 0)
    if delay_ms > 0:
        sleep(delay_ms / 1000.0)


def _run_job(job, provider: AIProviderPort) -> None:
    sid = job["student_id"]
    with get_conn() as conn:
        extracted = extract_features(sid, conn)
    ai = check_prediction(provider.predict(extracted["feat"]))
    with get_conn() as conn:
        persist_prediction(conn, sid, extracted, ai)


def _fail_job(job, exc: Exception, cfg: dict) -> str:
    attempts = int(job["attempts"] or 0) + 1
    now = _now()
    msg = str(exc)[:ERROR_TEXT_LIMIT] or exc.__class__.__name__
    with get_conn() as conn:
        if is_retryable(exc):
            backoff = next_backoff_sec(attempts, cfg["worker_base_backoff_sec"], cfg["worker_max_backoff_min"])
            retry_after = getattr(exc, "retry_after", None)
            if retry_after:
                backoff = max(backoff, int(retry_after))
            job_repo.reschedule(
                conn, job["id"], attempts, _iso(now + dt.timedelta(seconds=backoff)),
                f"{msg}. Backoff {backoff}s", _iso(now),
            )
            return "retry"
        job_repo.mark_error(conn, job["id"], attempts, msg, _iso(now))
        return "error"


def process_batch(provider: AIProviderPort, dry: bool = False, sleep: Callable[[float], None] = time.sleep) -> dict:
    """
    Run due analysis jobs one by one.

    Each job is marked processing, analysed with the same steps as an on-demand
    analysis, then marked done. Retryable failures go back to pending with
    exponential backoff; other failures end in error. Jobs are spaced by the
    configured delay plus jitter.
    """
    cfg = get_config()
    with get_conn() as conn:
        jobs = job_repo.list_due(conn, _iso(_now()), cfg["worker_batch_limit"])

    if not jobs:
        return {"ok": True, "processed": 0, "message": "No pending jobs ready."}
    if dry:
        return {"ok": True, "dry": True, "queued": len(jobs), "preview": [dict(j) for j in jobs[:PREVIEW_LIMIT]]}

    processed = retried = failed = 0
    for job in jobs:
        with get_conn() as conn:
            job_repo.mark_processing(conn, job["id"], _iso(_now()))
        try:
            _run_job(job, provider)
        except Exception as e:
            logger.warning("ai job %s for %s failed: %s", job["id"], job["student_id"], e)
            if _fail_job(job, e, cfg) == "retry":
                retried += 1
            else:
                failed += 1
        else:
            with get_conn() as conn:
                job_repo.mark_done(conn, job["id"], _iso(_now()))
            processed += 1
        _throttle(cfg, sleep)

    logger.info("worker batch: processed=%d retried=%d failed=%d", processed, retried, failed)
    return {"ok": True, "processed": processed, "retried": retried, "failed": failed, "batch": len(jobs)}
