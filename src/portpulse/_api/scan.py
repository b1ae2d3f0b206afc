"""Luggage analysis endpoint (AI-vision proxy).

Only the consumption side lives here: the service is expected to return a
:class:`ScanResult`-shaped JSON object, or the model's raw text answer
(possibly wrapped in markdown code fences). Failures never propagate; the
caller always gets something renderable.
"""

from __future__ import annotations

import logging

from portpulse._transport import Transport
from portpulse.exceptions import TransportError
from portpulse.models.scan import ScanProvider, ScanResult, parse_scan_payload, parse_scan_text

_logger = logging.getLogger(__name__)


def _failure_message(provider: ScanProvider) -> str:
    hint = (
        "Gemini must be reached through the server proxy."
        if provider is ScanProvider.GEMINI
        else "Check the network or switch models."
    )
    return f"AI connection failed ({provider.value}). {hint}"


async def analyze_luggage_image(
    transport: Transport,
    url: str,
    image_b64: str,
    *,
    provider: ScanProvider = ScanProvider.QWEN,
) -> ScanResult:
    """Submit a base64 JPEG for analysis and return the sanitised result."""
    try:
        body = await transport.request_json(
            "POST",
            url,
            json_body={"image": image_b64, "provider": provider.value},
            allow_text=True,
        )
    except TransportError as exc:
        _logger.warning("Luggage analysis failed: %s", exc)
        return ScanResult.fallback(_failure_message(provider))

    if isinstance(body, str):
        return parse_scan_text(body)
    if not isinstance(body, dict):
        return ScanResult.fallback(_failure_message(provider))
    return parse_scan_payload(body)
