from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, Header, HTTPException

from ..logs import LogContext
from ..providers.ai_provider import AIProviderPort
from ..services.config_svc import get_secret
from ..services.recommend_svc import predict_graduation, recommend_courses
from ..services.risk_svc import analyze_student, get_latest_risk
from ..services.worker_svc import process_batch
from .deps import API_PREFIX, get_ai_provider, student_access, to_http

router = APIRouter()


def _analyze(student_id: str, user: dict, provider: AIProviderPort):
    log = LogContext("AI_ANALYZE", user=user["email"])
    try:
        out = analyze_student(student_id, provider, log)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)


@router.post(f"{API_PREFIX}/students/{{student_id}}/analyze")
def api_analyze(student_id: str, user: dict = Depends(student_access), provider: AIProviderPort = Depends(get_ai_provider)):
    return _analyze(student_id, user, provider)


@router.get(f"{API_PREFIX}/students/{{student_id}}/analyze")
def api_analyze_get(student_id: str, user: dict = Depends(student_access), provider: AIProviderPort = Depends(get_ai_provider)):
    return _analyze(student_id, user, provider)


@router.get(f"{API_PREFIX}/students/{{student_id}}/risk/latest")
def api_risk_latest(student_id: str, user: dict = Depends(student_access)):
    return get_latest_risk(student_id)


def _recommend(student_id: str, provider: AIProviderPort):
    try:
        return recommend_courses(student_id, provider)
    except Exception as e:
        raise to_http(e)


@router.post(f"{API_PREFIX}/students/{{student_id}}/recommend")
def api_recommend(student_id: str, user: dict = Depends(student_access), provider: AIProviderPort = Depends(get_ai_provider)):
    return _recommend(student_id, provider)


@router.get(f"{API_PREFIX}/students/{{student_id}}/recommend")
def api_recommend_get(student_id: str, user: dict = Depends(student_access), provider: AIProviderPort = Depends(get_ai_provider)):
    return _recommend(student_id, provider)


def _graduation(student_id: str, provider: AIProviderPort):
    try:
        return predict_graduation(student_id, provider)
    except Exception as e:
        raise to_http(e)


@router.post(f"{API_PREFIX}/students/{{student_id}}/predict-graduation")
def api_predict_graduation(student_id: str, user: dict = Depends(student_access), provider: AIProviderPort = Depends(get_ai_provider)):
    return _graduation(student_id, provider)


@router.get(f"{API_PREFIX}/students/{{student_id}}/predict-graduation")
def api_predict_graduation_get(student_id: str, user: dict = Depends(student_access), provider: AIProviderPort = Depends(get_ai_provider)):
    return _graduation(student_id, provider)


def worker_token_ok(token: str | None) -> bool:
    expected = get_secret("worker_token")
    return bool(expected) and bool(token) and hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def require_worker_token(x_worker_token: str | None = Header(None)) -> None:
    if not worker_token_ok(x_worker_token):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post(f"{API_PREFIX}/ai/worker")
def api_ai_worker(
    dry: str | None = None,
    _: None = Depends(require_worker_token),
    provider: AIProviderPort = Depends(get_ai_provider),
):
    is_dry = dry == "1"
    log = LogContext("AI_WORKER", user="worker")
    log.set_payload({"dry": is_dry})
    try:
        out = process_batch(provider, dry=is_dry)
        log.set_after(out)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)
