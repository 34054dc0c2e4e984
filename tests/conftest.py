"""
Pytest configuration and shared fixtures.

Network access is replaced by FakeSession, which stands in for an
aiohttp.ClientSession: every get/post is recorded and answered by a
handler returning a FakeResponse.
"""

import asyncio
import copy
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from utils.config_loader import load_config


class FakeResponse:
    """Async context manager mimicking aiohttp's ClientResponse."""

    def __init__(
        self,
        status: int = 200,
        payload: Any = None,
        text: Optional[str] = None,
        delay: float = 0.0,
        error: Optional[BaseException] = None,
    ):
        self.status = status
        self.payload = payload
        self._text = text
        self.delay = delay
        self.error = error

    async def __aenter__(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self, content_type=None):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    async def text(self):
        if self._text is not None:
            return self._text
        return json.dumps(self.payload)


Handler = Callable[[str, str, Dict[str, Any]], FakeResponse]


class FakeSession:
    """Records requests and answers them through a handler or a fixed response."""

    def __init__(self, responder: Any = None):
        if responder is None:
            responder = FakeResponse(payload={})
        self._responder = responder
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    def _respond(self, method: str, url: str, kwargs: Dict[str, Any]) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        if callable(self._responder):
            return self._responder(method, url, kwargs)
        return self._responder

    def get(self, url, **kwargs):
        return self._respond("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._respond("POST", url, kwargs)


@pytest.fixture(scope="session")
def base_settings() -> Dict[str, Any]:
    """The shipped config/settings.yaml."""
    return load_config()


@pytest.fixture
def settings(base_settings) -> Dict[str, Any]:
    """A private copy of the settings, safe to modify in a test."""
    return copy.deepcopy(base_settings)


@pytest.fixture
def two_area_settings(settings) -> Dict[str, Any]:
    settings["traffic"]["areas"] = [
        {"id": "gulshan", "name": "Gulshan", "lat": 23.7931, "lon": 90.4126},
        {"id": "mirpur", "name": "Mirpur", "lat": 23.8223, "lon": 90.3654,
         "road_types": ["Highway", "Local Street"]},
    ]
    return settings


def flow_payload(current: float, free: float) -> Dict[str, Any]:
    return {
        "flowSegmentData": {
            "currentSpeed": current,
            "freeFlowSpeed": free,
            "currentTravelTime": 300,
            "freeFlowTravelTime": 200,
            "confidence": 0.9,
            "roadClosure": False,
        }
    }


def incident_payload(*magnitudes: int, end_time: Optional[str] = None) -> Dict[str, Any]:
    return {
        "incidents": [
            {
                "type": "Feature",
                "properties": {
                    "magnitudeOfDelay": magnitude,
                    "events": [{"description": "Stationary traffic", "code": 101}],
                    "startTime": "2024-05-01T07:00:00Z",
                    "endTime": end_time,
                },
            }
            for magnitude in magnitudes
        ]
    }


def completion_payload(content: Any) -> Dict[str, Any]:
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


def air_quality_payload(aqi: int, pm2_5: float = 12.5) -> Dict[str, Any]:
    return {
        "coord": {"lon": 90.4125, "lat": 23.8103},
        "list": [{"main": {"aqi": aqi}, "components": {"pm2_5": pm2_5, "pm10": 20.1}, "dt": 1714550400}],
    }
