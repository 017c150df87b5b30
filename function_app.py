import json
import logging
import math
import os
from typing import Dict, Optional

import azure.functions as func

from text_density.density_analysis import (
    analyze_density,
    analyze_density_from_image,
    failed_result,
    observations_from_pairs,
)
from text_density.density_types import DensityConfig, InvalidDensityConfigError
from text_density.image_io import load_rgb_image
from text_density.overlay import render_overlay_bytes
from text_density.settings import (
    density_config_from_mapping,
    load_density_config_from_env,
    load_text_detector_config_from_env,
)

app = func.FunctionApp()

DEFAULT_DENSITY_CONFIG = load_density_config_from_env()
TEXT_DETECTOR_CONFIG = load_text_detector_config_from_env()


def _resolve_auth_level(value: Optional[str], default: func.AuthLevel) -> func.AuthLevel:
    if not value:
        return default
    normalized = value.strip().upper()
    if normalized in {"ANONYMOUS", "FUNCTION", "ADMIN"}:
        return getattr(func.AuthLevel, normalized)
    logging.warning("Unknown auth level '%s'; defaulting to %s", value, default)
    return default


DEFAULT_AUTH_LEVEL = _resolve_auth_level(
    os.environ.get("HTTP_AUTH_LEVEL"), func.AuthLevel.FUNCTION
)
HEALTH_AUTH_LEVEL = _resolve_auth_level(
    os.environ.get("HEALTH_AUTH_LEVEL"), DEFAULT_AUTH_LEVEL
)


def _json_response(payload: Dict[str, object], status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        body=json.dumps(payload),
        status_code=status_code,
        mimetype="application/json",
    )


def _config_from_request(
    req: func.HttpRequest, body_config: Optional[Dict[str, object]] = None
) -> DensityConfig:
    """Layer JSON body config, then query params, over the env defaults."""
    config = DEFAULT_DENSITY_CONFIG
    if body_config:
        config = density_config_from_mapping(body_config, base=config)
    return density_config_from_mapping(req.params, base=config)


def _reject_json_constant(name: str) -> float:
    raise ValueError(f"Unsupported JSON constant {name}")


def _parse_finite_float(value: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Number out of range: {value}")
    return number


def _loads_json(raw: bytes) -> object:
    """Decode strict JSON; NaN, Infinity and overflowing numbers are rejected."""
    return json.loads(
        raw.decode("utf-8"),
        parse_constant=_reject_json_constant,
        parse_float=_parse_finite_float,
    )


@app.function_name(name="Health")
@app.route(route="health", methods=["GET"], auth_level=HEALTH_AUTH_LEVEL)
def health(req: func.HttpRequest) -> func.HttpResponse:
    """Simple health endpoint for Postman/smoke tests."""
    return func.HttpResponse("OK", status_code=200)


@app.function_name(name="AnalyzeDensity")
@app.route(route="density", methods=["POST"], auth_level=DEFAULT_AUTH_LEVEL)
def analyze_density_endpoint(req: func.HttpRequest) -> func.HttpResponse:
    """Find the densest text region for already-recognized observations.

    Body: {"observations": [{"text": "...", "bbox": [x, y, w, h]}], "config": {...}}
    with normalized, bottom-left-origin boxes. Query params override config.
    """
    raw = req.get_body() or b""
    if not raw:
        return func.HttpResponse(
            "Provide a JSON body with observations.", status_code=400
        )
    try:
        body = _loads_json(raw)
    except ValueError:
        return func.HttpResponse("Request body is not valid JSON.", status_code=400)
    if not isinstance(body, dict) or not isinstance(body.get("observations", []), list):
        return func.HttpResponse(
            "Expected an object with an 'observations' list.", status_code=400
        )

    body_config = body.get("config") or {}
    if not isinstance(body_config, dict):
        return func.HttpResponse("'config' must be an object.", status_code=400)

    try:
        config = _config_from_request(req, body_config)
    except InvalidDensityConfigError as exc:
        return func.HttpResponse(f"Invalid density config: {exc}", status_code=400)

    try:
        observations = observations_from_pairs(body.get("observations", []))
    except ValueError as exc:
        return func.HttpResponse(str(exc), status_code=400)

    result = analyze_density(observations, config)
    logging.info(
        "Density analysis of %d observations: section=%s density=%s region=%s",
        len(observations),
        result.winning_index,
        result.winning_density,
        result.region,
    )
    return _json_response(result.to_dict())


@app.function_name(name="AnalyzeDensityImage")
@app.route(route="density/image", methods=["POST"], auth_level=DEFAULT_AUTH_LEVEL)
def analyze_density_image(req: func.HttpRequest) -> func.HttpResponse:
    """Run OCR on an uploaded image and find its densest text region.

    Send the image bytes as the raw request body.

    Query params:
      - sections, minimum_density, window_size, overlap, density_method
      - output=json|overlay (default: json)
    """
    image_bytes = req.get_body() or b""
    if not image_bytes:
        return func.HttpResponse(
            "Provide image bytes in the request body.", status_code=400
        )

    output_mode = (req.params.get("output") or "json").strip().lower()
    if output_mode not in {"json", "overlay"}:
        return func.HttpResponse(
            "Unsupported output. Use 'json' or 'overlay'.", status_code=400
        )

    try:
        config = _config_from_request(req)
    except InvalidDensityConfigError as exc:
        return func.HttpResponse(f"Invalid density config: {exc}", status_code=400)

    try:
        img = load_rgb_image(image_bytes)
    except ValueError as exc:
        img = None
        result = failed_result(config, str(exc))
    else:
        result = analyze_density_from_image(
            img, config, detector_config=TEXT_DETECTOR_CONFIG
        )
    if result.errors:
        logging.warning("Density analysis errors: %s", result.errors)

    if output_mode == "json" or result.errors:
        status_code = 200 if not result.errors else 207
        return _json_response(result.to_dict(), status_code=status_code)

    overlay_bytes, mime = render_overlay_bytes(img, result)
    headers = {"X-Observation-Count": str(len(result.observations))}
    if result.region is not None:
        headers["X-Densest-Section"] = str(result.winning_index)
    return func.HttpResponse(
        body=overlay_bytes,
        status_code=200,
        mimetype=mime,
        headers=headers,
    )
