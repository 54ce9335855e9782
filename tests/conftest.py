"""Shared pytest fixtures for testing."""

import base64
import json
from typing import AsyncGenerator, Callable, Dict, List, Tuple, Union

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from admissions_voice.config import Settings
from admissions_voice.upstream import RetryingCaller, RetryPolicy, UpstreamClient
from admissions_voice.upstream.openai import OpenAIOperations

OPENAI = "https://api.openai.com/v1"
TWILIO = "https://api.twilio.com/2010-04-01"

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


# =============================================================================
# Upstream Fakes
# =============================================================================


class FakeUpstream:
    """
    Scripted upstream services behind an httpx MockTransport.

    Replies are queued per (method, url). The last queued reply repeats once
    the queue is drained. Exceptions are raised instead of returned.
    """

    def __init__(self) -> None:
        self.replies: Dict[Tuple[str, str], List[Reply]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, url: str, *replies: Reply) -> "FakeUpstream":
        self.replies.setdefault((method, url), []).extend(replies)
        return self

    def calls(self, url: str) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.replies.get((request.method, str(request.url)))
        if not queue:
            return httpx.Response(404, json={"error": {"message": "no route"}})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def transcription_reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"text": text})


def chat_reply(content: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "id": "chatcmpl-test",
            "choices": [
                {"index": 0, "message": {"role": "assistant", "content": content}}
            ],
        },
    )


def speech_reply(audio: bytes = b"ID3fake-mp3-audio") -> httpx.Response:
    return httpx.Response(200, content=audio, headers={"content-type": "audio/mpeg"})


def realtime_session_reply() -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "id": "sess_test",
            "object": "realtime.session",
            "model": "gpt-4o-realtime-preview",
            "client_secret": {"value": "ek_test_secret", "expires_at": 1735689600},
        },
    )


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content)


# =============================================================================
# Settings and Component Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with a test API key and no traversal provider."""
    return Settings(
        openai_api_key="sk-test-0123456789abcdef",
        archive_dir=str(tmp_path / "archive"),
        twilio_account_sid="",
        twilio_auth_token="",
        turn_urls="",
    )


@pytest.fixture
def twilio_settings(tmp_path) -> Settings:
    """Settings with Twilio ICE provisioning enabled."""
    return Settings(
        openai_api_key="sk-test-0123456789abcdef",
        archive_dir=str(tmp_path / "archive"),
        twilio_account_sid="AC123",
        twilio_auth_token="twilio-token",
    )


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest_asyncio.fixture
async def http_client(upstream: FakeUpstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=upstream.transport) as client:
        yield client


@pytest.fixture
def upstream_client(http_client: httpx.AsyncClient) -> UpstreamClient:
    return UpstreamClient(http_client)


@pytest.fixture
def caller(upstream_client: UpstreamClient, sleep: RecordingSleep) -> RetryingCaller:
    """Retrying caller with default policy, no real sleeping and no jitter."""
    return RetryingCaller(
        upstream_client,
        RetryPolicy(),
        sleep=sleep,
        jitter=lambda a, b: 0.0,
    )


@pytest.fixture
def operations(settings: Settings) -> OpenAIOperations:
    return OpenAIOperations(settings)


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def app(settings: Settings, upstream: FakeUpstream) -> FastAPI:
    """Create test FastAPI application with scripted upstreams."""
    from admissions_voice.main import create_app

    application = create_app(settings, transport=upstream.transport)
    # Retries must not wait in real time
    application.state.pipeline.caller._sleep = RecordingSleep()
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.http_client.aclose()


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def sample_audio_data() -> bytes:
    """Sample audio data (a short webm-like blob)."""
    return b"\x1aE\xdf\xa3" + bytes(2048)


@pytest.fixture
def audio_base64(sample_audio_data: bytes) -> str:
    return base64.b64encode(sample_audio_data).decode()


@pytest.fixture
def audio_data_url(audio_base64: str) -> str:
    return f"data:audio/webm;base64,{audio_base64}"
