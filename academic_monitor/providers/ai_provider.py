from __future__ import annotations

import logging
from typing import Any

import requests

from ..domain.errors import ServiceConfigError, UpstreamError
from ..services.utils import join_url, to_float_safe

logger = logging.getLogger(__name__)


class AIProviderPort:
    def predict(self, features: dict) -> dict: ...
    def recommend(self, payload: dict) -> list: ...
    def predict_graduation(self, payload: dict) -> dict: ...


def _is_probability(v) -> bool:
    return v is None or (isinstance(v, (int, float)) and not isinstance(v, bool))


def check_prediction(data: Any) -> dict:
    """A prediction body needs a text label; probabilities, when sent, map labels to numbers."""
    if not isinstance(data, dict) or not isinstance(data.get("prediction"), str):
        raise UpstreamError("AI response is not valid JSON")
    probs = data.get("probabilities")
    if probs is not None and not (isinstance(probs, dict) and all(_is_probability(v) for v in probs.values())):
        raise UpstreamError("AI response has invalid probabilities")
    return data


class AIServiceClient:
    """Thin wrapper around the ML prediction service.

    One POST per call with a fixed timeout. Non-2xx answers and bodies that are
    not JSON of the expected shape raise UpstreamError; nothing is retried here.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, long_timeout: float = 15.0, session: requests.Session | None = None):
        if not base_url:
            raise ServiceConfigError("AI_BASE_URL is not configured")
        self.base_url = base_url
        self.timeout = timeout
        self.long_timeout = long_timeout
        self.session = session or requests.Session()

    def _post(self, path: str, payload: Any, timeout: float) -> Any:
        url = join_url(self.base_url, path)
        try:
            res = self.session.post(
                url,
                json=payload,
                headers={"accept": "application/json"},
                timeout=timeout,
            )
        except requests.Timeout as e:
            logger.warning("AI service timeout on %s: %s", path, e)
            raise UpstreamError(f"AI service timeout after {timeout:g}s") from e
        except requests.RequestException as e:
            logger.warning("AI service unreachable on %s: %s", path, e)
            raise UpstreamError(f"AI service unreachable: {e}") from e

        if not res.ok:
            text = (res.text or "").strip()
            retry_after = to_float_safe(res.headers.get("retry-after"))
            logger.warning("AI service %s answered %s", path, res.status_code)
            raise UpstreamError(
                f"AI service error ({res.status_code}): {text or res.reason}",
                upstream_status=res.status_code,
                retry_after=retry_after,
            )
        try:
            return res.json()
        except ValueError as e:
            raise UpstreamError("AI response is not valid JSON", upstream_status=res.status_code) from e

    def predict(self, features: dict) -> dict:
        return check_prediction(self._post("/predict/", features, self.timeout))

    def recommend(self, payload: dict) -> list:
        data = self._post("/recommend/", payload, self.long_timeout)
        if not isinstance(data, list):
            raise UpstreamError("AI service returned non-array payload")
        return data

    def predict_graduation(self, payload: dict) -> dict:
        data = self._post("/predict-graduation/", payload, self.long_timeout)
        if not isinstance(data, dict):
            raise UpstreamError("AI service returned invalid payload")
        return data


def build_ai_client(cfg: dict) -> AIServiceClient:
    return AIServiceClient(
        cfg.get("ai_base_url") or "",
        timeout=float(cfg.get("ai_timeout_sec") or 10.0),
        long_timeout=float(cfg.get("ai_long_timeout_sec") or 15.0),
    )
