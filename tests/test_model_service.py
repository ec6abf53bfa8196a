import json
from datetime import timedelta

import httpx
import pytest

from src.models.conversation import Turn
from src.models.types import Role
from src.services.exceptions import ConfigurationError, ModelError, RateLimitError, ValidationError
from src.services.model_service import GeminiClient

from tests.conftest import NOW


def turns(*pairs):
    return [
        Turn(role=role, content=content, timestamp=NOW + timedelta(seconds=i))
        for i, (role, content) in enumerate(pairs)
    ]


def candidate(text):
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def make_client(handler, **overrides):
    values = {
        "api_key": "model-key",
        "model": "gemini-test",
        "api_url": "https://models.example.com/v1beta",
        "timeout_seconds": 5,
    }
    values.update(overrides)
    return GeminiClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), **values)


class TestBuildRequest:
    def test_roles_and_merging(self):
        client = make_client(lambda request: httpx.Response(200))
        history = turns((Role.USER, "hi"), (Role.USER, "are you there?"), (Role.MODEL, "yes"), (Role.USER, "  "))

        body = client.build_request(history)

        assert body == {
            "contents": [
                {"role": "user", "parts": [{"text": "hi\n\nare you there?"}]},
                {"role": "model", "parts": [{"text": "yes"}]},
            ]
        }

    def test_system_prompt(self):
        client = make_client(lambda request: httpx.Response(200), system_prompt="Be brief.")

        body = client.build_request(turns((Role.USER, "hi")))

        assert body["systemInstruction"] == {"parts": [{"text": "Be brief."}]}


@pytest.mark.asyncio
async def test_generate_returns_first_candidate_text():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=candidate("Hello!"))

    client = make_client(handler)

    assert await client.generate(turns((Role.USER, "hi"))) == "Hello!"
    assert seen[0].url.path == "/v1beta/models/gemini-test:generateContent"
    assert seen[0].url.params["key"] == "model-key"
    assert json.loads(seen[0].content)["contents"][0]["parts"][0]["text"] == "hi"


@pytest.mark.asyncio
async def test_generate_without_candidates_returns_none():
    client = make_client(lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))

    assert await client.generate(turns((Role.USER, "hi"))) is None


@pytest.mark.asyncio
async def test_generate_with_malformed_candidate_returns_none():
    client = make_client(lambda request: httpx.Response(200, json={"candidates": [{"content": "oops"}]}))

    assert await client.generate(turns((Role.USER, "hi"))) is None


@pytest.mark.asyncio
async def test_http_errors_raise_model_error():
    client = make_client(lambda request: httpx.Response(500, json={"error": {"message": "backend down"}}))

    with pytest.raises(ModelError) as exc_info:
        await client.generate(turns((Role.USER, "hi")))
    assert exc_info.value.status_code == 500
    assert "backend down" in str(exc_info.value)


@pytest.mark.asyncio
async def test_quota_raises_rate_limit_error():
    client = make_client(lambda request: httpx.Response(429, headers={"Retry-After": "7"}))

    with pytest.raises(RateLimitError) as exc_info:
        await client.generate(turns((Role.USER, "hi")))
    assert exc_info.value.retry_after == 7


@pytest.mark.asyncio
async def test_timeout_raises_model_error():
    def handler(request):
        raise httpx.ConnectTimeout("slow", request=request)

    with pytest.raises(ModelError):
        await make_client(handler).generate(turns((Role.USER, "hi")))


@pytest.mark.asyncio
async def test_invalid_json_raises_model_error():
    client = make_client(lambda request: httpx.Response(200, content=b"<html>"))

    with pytest.raises(ModelError):
        await client.generate(turns((Role.USER, "hi")))


@pytest.mark.asyncio
async def test_missing_key_and_empty_history():
    with pytest.raises(ConfigurationError):
        await make_client(lambda request: httpx.Response(200), api_key="").generate(turns((Role.USER, "hi")))

    with pytest.raises(ValidationError):
        await make_client(lambda request: httpx.Response(200)).generate([])


@pytest.mark.parametrize("data,expected", [
    (candidate("text"), "text"),
    ({"candidates": [{"content": {"parts": [{"text": ""}, {"text": "second"}]}}]}, "second"),
    ({"candidates": []}, None),
    ({"candidates": [{"content": "oops"}]}, None),
    ({"candidates": [{"content": {"parts": "oops"}}]}, None),
    ({"candidates": {"first": {}}}, None),
    ([], None),
])
def test_extract_reply(data, expected):
    assert GeminiClient.extract_reply(data) == expected
