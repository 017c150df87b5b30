import io
import json
from typing import Dict, Optional

import azure.functions as func
import numpy as np
import pytest
from PIL import Image

import function_app
from text_density.density_types import (
    DensityAnalysisResult,
    DensityConfig,
    NormalizedRect,
    TextObservation,
)
from text_density.image_io import load_rgb_image


class _StubRequest:
    def __init__(
        self,
        body: bytes = b"",
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self._body = body
        self.params = params or {}
        self.headers = headers or {}

    def get_body(self) -> bytes:
        return self._body


def _json_body(payload: object) -> bytes:
    return json.dumps(payload).encode("utf-8")


def _png_bytes(size=(40, 20)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color="white").save(buf, format="PNG")
    return buf.getvalue()


def _result(errors=None, region=None) -> DensityAnalysisResult:
    return DensityAnalysisResult(
        config=DensityConfig(sections=2),
        profile=np.array([3.0, 0.0]),
        smoothed=np.array([1.5, 1.5]),
        winning_index=0,
        winning_density=1.5,
        region=region,
        observations=(TextObservation("abc", NormalizedRect(0.1, 0.1, 0.2, 0.2)),),
        image_width=40,
        image_height=20,
        errors=errors or [],
    )


def test_resolve_auth_level_defaults_and_validation() -> None:
    default = func.AuthLevel.FUNCTION
    assert function_app._resolve_auth_level(None, default) == default
    assert (
        function_app._resolve_auth_level("anonymous", default)
        == func.AuthLevel.ANONYMOUS
    )
    assert function_app._resolve_auth_level("admin", default) == func.AuthLevel.ADMIN
    assert function_app._resolve_auth_level("unknown", default) == default


def test_health_returns_ok() -> None:
    resp = function_app.health(_StubRequest())
    assert resp.status_code == 200
    assert resp.get_body() == b"OK"


def test_analyze_density_missing_body_returns_400() -> None:
    resp = function_app.analyze_density_endpoint(_StubRequest(body=b""))
    assert resp.status_code == 400


def test_analyze_density_invalid_json_returns_400() -> None:
    resp = function_app.analyze_density_endpoint(_StubRequest(body=b"{nope"))
    assert resp.status_code == 400


def test_analyze_density_malformed_observation_returns_400() -> None:
    body = _json_body({"observations": [{"text": "x", "bbox": [0.1]}]})
    resp = function_app.analyze_density_endpoint(_StubRequest(body=body))
    assert resp.status_code == 400


def test_analyze_density_invalid_config_returns_400() -> None:
    body = _json_body({"observations": [], "config": {"sections": 0}})
    resp = function_app.analyze_density_endpoint(_StubRequest(body=body))
    assert resp.status_code == 400
    assert b"sections" in resp.get_body()


def test_analyze_density_query_params_override_body_config() -> None:
    body = _json_body(
        {
            "observations": [
                {"text": "abc", "bbox": [0.0, 0.0, 0.1, 0.1]},
                {"text": "de", "bbox": [0.6, 0.2, 0.2, 0.1]},
            ],
            "config": {"sections": 2, "window_size": 1, "overlap": 0},
        }
    )
    resp = function_app.analyze_density_endpoint(
        _StubRequest(body=body, params={"density_method": "count", "minimum_density": "1"})
    )
    payload = json.loads(resp.get_body().decode("utf-8"))

    assert resp.status_code == 200
    assert payload["config"]["density_method"] == "count"
    assert payload["profile"] == [1.0, 1.0]
    assert payload["winning_index"] == 0
    assert payload["region"] == [0.0, 0.0, 0.5, 1.0]
    assert len(payload["observations"]) == 2


def test_analyze_density_image_missing_body_returns_400() -> None:
    resp = function_app.analyze_density_image(_StubRequest(body=b""))
    assert resp.status_code == 400


def test_analyze_density_image_invalid_output_returns_400() -> None:
    resp = function_app.analyze_density_image(
        _StubRequest(body=b"image", params={"output": "zip"})
    )
    assert resp.status_code == 400


def test_analyze_density_image_invalid_config_returns_400() -> None:
    resp = function_app.analyze_density_image(
        _StubRequest(body=b"image", params={"window_size": "0"})
    )
    assert resp.status_code == 400


def test_analyze_density_rejects_non_finite_numbers() -> None:
    for bbox in ("[0.1, 0.0, 0.1, NaN]", "[0.1, 0.0, 0.1, Infinity]", "[1e400, 0, 0.1, 0.1]"):
        body = ('{"observations": [{"text": "x", "bbox": %s}]}' % bbox).encode("utf-8")
        resp = function_app.analyze_density_endpoint(_StubRequest(body=body))
        assert resp.status_code == 400


def test_analyze_density_drops_overflowing_boxes() -> None:
    body = _json_body(
        {
            "observations": [
                {"text": "a", "bbox": [1e308, 0, 1e308, 0.1]},
                {"text": "bb", "bbox": [0.5, 0, 0.1, 0.1]},
            ],
            "config": {"density_method": "count", "window_size": 1},
        }
    )
    resp = function_app.analyze_density_endpoint(_StubRequest(body=body))
    payload = json.loads(resp.get_body().decode("utf-8"))

    assert resp.status_code == 200
    assert payload["winning_index"] == 5
    assert sum(payload["profile"]) == 1.0


def test_analyze_density_image_serializes_response(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    captured = {}

    def _fake(img, config, **kwargs):
        captured["size"] = img.size
        captured["config"] = config
        return _result(region=NormalizedRect(0.0, 0.0, 0.5, 1.0))

    monkeypatch.setattr(function_app, "analyze_density_from_image", _fake)

    resp = function_app.analyze_density_image(
        _StubRequest(body=_png_bytes(), params={"sections": "2"})
    )
    payload = json.loads(resp.get_body().decode("utf-8"))

    assert resp.status_code == 200
    assert captured["size"] == (40, 20)
    assert captured["config"].sections == 2
    assert payload["image_width"] == 40
    assert payload["region"] == [0.0, 0.0, 0.5, 1.0]
    assert payload["observations"][0]["text"] == "abc"


def test_analyze_density_image_invalid_bytes_returns_207() -> None:
    resp = function_app.analyze_density_image(
        _StubRequest(body=b"image", params={"output": "overlay"})
    )
    payload = json.loads(resp.get_body().decode("utf-8"))

    assert resp.status_code == 207
    assert resp.mimetype == "application/json"
    assert payload["errors"] == ["Invalid image bytes"]
    assert payload["region"] is None


def test_analyze_density_image_sets_207_on_errors(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(
        function_app,
        "analyze_density_from_image",
        lambda *_, **__: _result(errors=["text_detection_error: boom"]),
    )

    resp = function_app.analyze_density_image(
        _StubRequest(body=_png_bytes(), params={"output": "overlay"})
    )
    assert resp.status_code == 207
    assert resp.mimetype == "application/json"


def test_analyze_density_image_returns_overlay_png(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    decoded = []

    def _counting_load(image_bytes):
        img = load_rgb_image(image_bytes)
        decoded.append(img)
        return img

    monkeypatch.setattr(function_app, "load_rgb_image", _counting_load)
    monkeypatch.setattr(
        function_app,
        "analyze_density_from_image",
        lambda *_, **__: _result(region=NormalizedRect(0.0, 0.0, 0.5, 1.0)),
    )

    resp = function_app.analyze_density_image(
        _StubRequest(body=_png_bytes(), params={"output": "overlay"})
    )

    assert resp.status_code == 200
    assert len(decoded) == 1
    assert resp.mimetype == "image/png"
    assert resp.headers["X-Densest-Section"] == "0"
    assert resp.headers["X-Observation-Count"] == "1"
    reopened = Image.open(io.BytesIO(resp.get_body()))
    assert reopened.size == (40, 20)
