from unittest.mock import MagicMock

import pytest
import requests

from academic_monitor.domain.errors import ServiceConfigError, UpstreamError
from academic_monitor.providers.ai_provider import AIServiceClient, build_ai_client


def _response(status=200, body=None, text="", headers=None, json_error=False):
    res = MagicMock()
    res.status_code = status
    res.ok = 200 <= status < 300
    res.text = text
    res.reason = "Reason"
    res.headers = headers or {}
    if json_error:
        res.json.side_effect = ValueError("no json")
    else:
        res.json.return_value = body
    return res


def _client(res=None, exc=None):
    session = MagicMock()
    if exc is not None:
        session.post.side_effect = exc
    else:
        session.post.return_value = res
    return AIServiceClient("http://ai.local/", timeout=10, long_timeout=15, session=session), session


def test_predict_posts_features():
    client, session = _client(_response(body={"prediction": "Risiko Rendah", "probabilities": {}}))
    out = client.predict({"IPK_Terakhir": 3.1})
    assert out["prediction"] == "Risiko Rendah"
    args, kwargs = session.post.call_args
    assert args[0] == "http://ai.local/predict/"
    assert kwargs["json"] == {"IPK_Terakhir": 3.1}
    assert kwargs["timeout"] == 10


def test_recommend_uses_long_timeout_and_requires_list():
    client, session = _client(_response(body=[{"kode": "EL3101"}]))
    assert client.recommend({"current_semester": 3}) == [{"kode": "EL3101"}]
    assert session.post.call_args[1]["timeout"] == 15

    client, _ = _client(_response(body={"not": "a list"}))
    with pytest.raises(UpstreamError):
        client.recommend({})


def test_graduation_requires_object():
    client, session = _client(_response(body={"predicted_semester": 9}))
    assert client.predict_graduation({})["predicted_semester"] == 9
    assert session.post.call_args[0][0] == "http://ai.local/predict-graduation/"

    client, _ = _client(_response(body=[1, 2]))
    with pytest.raises(UpstreamError):
        client.predict_graduation({})


def test_non_ok_status_carries_upstream_status_and_retry_after():
    client, _ = _client(_response(status=429, text="slow down", headers={"retry-after": "12"}))
    with pytest.raises(UpstreamError) as ei:
        client.predict({})
    assert ei.value.upstream_status == 429
    assert ei.value.retry_after == 12.0
    assert "429" in str(ei.value)


def test_invalid_json_body():
    client, _ = _client(_response(json_error=True))
    with pytest.raises(UpstreamError):
        client.predict({})


def test_prediction_without_label_is_rejected():
    client, _ = _client(_response(body={"probabilities": {}}))
    with pytest.raises(UpstreamError):
        client.predict({})


def test_timeout_and_connection_errors():
    client, _ = _client(exc=requests.Timeout("read timed out"))
    with pytest.raises(UpstreamError) as ei:
        client.predict({})
    assert ei.value.upstream_status is None

    client, _ = _client(exc=requests.ConnectionError("refused"))
    with pytest.raises(UpstreamError):
        client.predict({})


def test_missing_base_url():
    with pytest.raises(ServiceConfigError):
        build_ai_client({"ai_base_url": ""})


@pytest.mark.parametrize(
    "probabilities",
    [
        {"Risiko Tinggi": "0.8"},
        {"Risiko Tinggi": True},
        [["Risiko Tinggi", 0.8]],
    ],
)
def test_malformed_probabilities_are_rejected(probabilities):
    client, _ = _client(_response(body={"prediction": "Risiko Tinggi", "probabilities": probabilities}))
    with pytest.raises(UpstreamError):
        client.predict({})


def test_probabilities_may_be_missing_or_null():
    client, _ = _client(_response(body={"prediction": "Risiko Rendah"}))
    assert client.predict({})["prediction"] == "Risiko Rendah"
    client, _ = _client(_response(body={"prediction": "Risiko Rendah", "probabilities": {"Risiko Sedang": None}}))
    assert client.predict({})["probabilities"] == {"Risiko Sedang": None}
