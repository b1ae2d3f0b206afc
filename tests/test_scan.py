from __future__ import annotations

from typing import Any

import aiohttp
import pytest
from aiohttp import test_utils, web

from portpulse._api.scan import analyze_luggage_image
from portpulse._transport import HttpTransport
from portpulse.exceptions import TransportError
from portpulse.models.scan import RiskLevel, ScanProvider, ScanResult, parse_scan_payload, parse_scan_text


class _FixedTransport:
    def __init__(self, body: Any = None, error: Exception | None = None) -> None:
        self._body = body
        self._error = error
        self.payloads: list[Any] = []

    async def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        self.payloads.append(kwargs.get("json_body"))
        if self._error is not None:
            raise self._error
        return self._body


def test_parse_fenced_json() -> None:
    text = (
        "```json\n"
        '{"riskLevel": "HIGH", "funnyMessage": "Full case of Moutai", "detectedItems": ["Moutai"],'
        ' "estimatedValue": 15000, "isDaigouSuspect": true}\n'
        "```"
    )

    result = parse_scan_text(text)

    assert result.risk_level is RiskLevel.HIGH
    assert result.detected_items == ["Moutai"]
    assert result.estimated_value == 15000
    assert result.is_daigou_suspect


def test_parse_non_json_falls_back() -> None:
    result = parse_scan_text("I think this is fine")

    assert result.risk_level is RiskLevel.MEDIUM
    assert result.detected_items == ["Unknown"]
    assert result.estimated_value == 0
    assert not result.is_daigou_suspect


def test_wrong_types_collapse_to_defaults() -> None:
    result = ScanResult.model_validate(
        {"riskLevel": "extreme", "detectedItems": "drone", "estimatedValue": "a lot", "isDaigouSuspect": 1}
    )

    assert result.risk_level is RiskLevel.MEDIUM
    assert result.detected_items == []
    assert result.estimated_value == 0
    assert result.is_daigou_suspect is True


@pytest.mark.asyncio
async def test_analyze_sends_image_and_provider() -> None:
    transport = _FixedTransport(body={"riskLevel": "LOW", "funnyMessage": "Just snacks", "detectedItems": ["Cookies"]})

    result = await analyze_luggage_image(transport, "https://scan.example/api/analyze", "aGVsbG8=")

    assert result.risk_level is RiskLevel.LOW
    assert result.funny_message == "Just snacks"
    assert transport.payloads == [{"image": "aGVsbG8=", "provider": "qwen"}]


@pytest.mark.asyncio
async def test_analyze_failure_returns_fallback() -> None:
    transport = _FixedTransport(error=TransportError("HTTP 502", status_code=502))

    result = await analyze_luggage_image(transport, "https://scan.example", "x", provider=ScanProvider.GEMINI)

    assert result.risk_level is RiskLevel.MEDIUM
    assert result.detected_items == ["Error"]
    assert "gemini" in result.funny_message


@pytest.mark.asyncio
async def test_analyze_accepts_raw_model_text() -> None:
    transport = _FixedTransport(body='```json\n{"riskLevel": "HIGH"}\n```')

    result = await analyze_luggage_image(transport, "https://scan.example", "x")

    assert result.risk_level is RiskLevel.HIGH


@pytest.mark.asyncio
async def test_answer_carrying_raw_key_is_still_usable() -> None:
    transport = _FixedTransport(body='{"riskLevel": "LOW", "raw": "x"}')

    result = await analyze_luggage_image(transport, "https://scan.example", "x")

    assert result.risk_level is RiskLevel.LOW
    assert result.raw == {"riskLevel": "LOW"}


class _Unprintable:
    def __str__(self) -> str:
        raise ValueError("no text form")


def test_unusable_payload_falls_back_instead_of_raising() -> None:
    result = parse_scan_payload({"riskLevel": "LOW", "funnyMessage": _Unprintable()})

    assert result.risk_level is RiskLevel.MEDIUM
    assert result.detected_items == ["Unknown"]


@pytest.mark.asyncio
async def test_plain_text_answer_over_http_falls_back() -> None:
    async def _handler(request: web.Request) -> web.Response:
        return web.Response(text="Looks like normal holiday luggage to me.")

    app = web.Application()
    app.router.add_post("/api/analyze", _handler)

    async with test_utils.TestServer(app) as server, aiohttp.ClientSession() as session:
        transport = HttpTransport(session, user_agent="test", timeout=5)
        result = await analyze_luggage_image(transport, str(server.make_url("/api/analyze")), "x")

    assert result.detected_items == ["Unknown"]
    assert result.funny_message == "The AI did not return standard data, but things look fine."


@pytest.mark.asyncio
async def test_fenced_text_answer_over_http_is_parsed() -> None:
    async def _handler(request: web.Request) -> web.Response:
        return web.Response(text='```json\n{"riskLevel": "HIGH", "detectedItems": ["Drone"]}\n```')

    app = web.Application()
    app.router.add_post("/api/analyze", _handler)

    async with test_utils.TestServer(app) as server, aiohttp.ClientSession() as session:
        transport = HttpTransport(session, user_agent="test", timeout=5)
        result = await analyze_luggage_image(transport, str(server.make_url("/api/analyze")), "x")

    assert result.risk_level is RiskLevel.HIGH
    assert result.detected_items == ["Drone"]
