"""
Tests for LLMClient.

Uses httpx.MockTransport so no real endpoint is contacted.
"""

from __future__ import annotations

import json

import httpx
import pytest

from remedy_engine.clients.llm import LLMClient
from remedy_engine.config.settings import LLMConfig
from remedy_engine.exceptions import AnalysisError


READY_MODELS = {"data": [{"id": "test-model", "status": "ready"}]}


def make_client(handler, models: object = READY_MODELS) -> LLMClient:
    """Client whose model listing answers ``models`` and other calls ``handler``."""

    def route(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/models"):
            return httpx.Response(200, json=models)
        return handler(request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(route))
    return LLMClient(LLMConfig(endpoint="http://llm.test/v1/", model="test-model"), http_client)


def chat_response(content: object) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class TestComplete:
    """Tests for chat completion calls."""

    @pytest.mark.asyncio
    async def test_returns_first_choice(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return chat_response("Explanation: ok")

        async with make_client(handler) as client:
            answer = await client.complete("analyze this")

        assert answer == "Explanation: ok"
        assert str(requests[0].url) == "http://llm.test/v1/chat/completions"
        body = json.loads(requests[0].content)
        assert body["model"] == "test-model"
        assert [m["role"] for m in body["messages"]] == ["system", "user"]
        assert body["messages"][1]["content"] == "analyze this"

    @pytest.mark.asyncio
    async def test_http_error_raises(self) -> None:
        client = make_client(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(AnalysisError, match="LLM request failed"):
            await client.complete("prompt")

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self) -> None:
        client = make_client(lambda request: httpx.Response(200, text="not json"))

        with pytest.raises(AnalysisError, match="invalid JSON"):
            await client.complete("prompt")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [{}, {"choices": []}, {"choices": [{"message": {}}]}],
    )
    async def test_missing_content_raises(self, payload: dict) -> None:
        client = make_client(lambda request: httpx.Response(200, json=payload))

        with pytest.raises(AnalysisError, match="no message content"):
            await client.complete("prompt")

    @pytest.mark.asyncio
    async def test_blank_content_raises(self) -> None:
        client = make_client(lambda request: chat_response("   "))

        with pytest.raises(AnalysisError):
            await client.complete("prompt")

    @pytest.mark.asyncio
    async def test_connection_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AnalysisError):
            await make_client(handler).complete("prompt")

    @pytest.mark.asyncio
    async def test_none_prompt_rejected(self) -> None:
        with pytest.raises(ValueError):
            await LLMClient().complete(None)  # type: ignore[arg-type]


class TestModelReadiness:
    """Tests for the model status check."""

    @pytest.mark.asyncio
    async def test_ready_model(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=READY_MODELS)

        client = LLMClient(
            LLMConfig(endpoint="http://llm.test/v1", model="test-model"),
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        assert await client.is_model_ready() is True
        assert requests[0].method == "GET"
        assert str(requests[0].url) == "http://llm.test/v1/models"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "models",
        [
            {"data": [{"id": "test-model", "status": "loading"}]},
            {"data": [{"id": "other-model", "status": "ready"}]},
            {"data": [{"id": "test-model"}]},
            {"data": []},
            {},
            [],
        ],
    )
    async def test_model_not_ready(self, models: object) -> None:
        client = make_client(lambda request: chat_response("unused"), models=models)

        assert await client.is_model_ready() is False

    @pytest.mark.asyncio
    async def test_status_endpoint_failure_is_not_ready(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = LLMClient(
            LLMConfig(model="test-model"),
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        assert await client.is_model_ready() is False

    @pytest.mark.asyncio
    async def test_status_error_code_is_not_ready(self) -> None:
        client = LLMClient(
            LLMConfig(model="test-model"),
            httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(503))
            ),
        )

        assert await client.is_model_ready() is False

    @pytest.mark.asyncio
    async def test_complete_refused_when_not_ready(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return chat_response("Explanation: ok")

        client = make_client(handler, models={"data": []})

        with pytest.raises(AnalysisError, match="'test-model' is not ready"):
            await client.complete("prompt")
        assert calls == []

    @pytest.mark.asyncio
    async def test_readiness_check_can_be_disabled(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return chat_response("Explanation: ok")

        client = LLMClient(
            LLMConfig(model="test-model", require_ready_model=False),
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        assert await client.complete("prompt") == "Explanation: ok"
        assert [r.url.path for r in requests] == ["/v1/chat/completions"]
