"""
Completion Client Tests
=======================
OpenAICompletionClient against an in-process httpx.MockTransport.
"""
import asyncio
import json

import httpx
import pytest

from bugscope.completion import CompletionError, OpenAICompletionClient


def _run(coro):
    return asyncio.run(coro)


def _complete(handler, **client_kwargs):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = OpenAICompletionClient(http, "sk-test", **client_kwargs)
            return await client.complete(
                system="You are terse.", prompt="Say hi as JSON.", temperature=0.3
            )

    return _run(go())


def _chat_response(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


def test_request_shape():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return _chat_response('{"ok": true}')

    text = _complete(handler, model="gpt-4o-mini", base_url="https://llm.example/v1/")

    assert text == '{"ok": true}'
    assert seen["url"] == "https://llm.example/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {
        "model": "gpt-4o-mini",
        "messages": [
            {"role": "system", "content": "You are terse."},
            {"role": "user", "content": "Say hi as JSON."},
        ],
        "response_format": {"type": "json_object"},
        "temperature": 0.3,
    }


def test_null_content_becomes_empty_string():
    assert _complete(lambda request: _chat_response(None)) == ""


def test_error_status_surfaces_provider_message():
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}})

    with pytest.raises(CompletionError) as excinfo:
        _complete(handler)

    assert "401" in str(excinfo.value)
    assert "Incorrect API key provided" in str(excinfo.value)


def test_error_status_with_non_json_body():
    with pytest.raises(CompletionError) as excinfo:
        _complete(lambda request: httpx.Response(503, text="upstream down"))

    assert "503" in str(excinfo.value)


@pytest.mark.parametrize(
    "body",
    [{}, {"choices": []}, {"choices": [{"text": "legacy"}]}, ["not", "an", "object"]],
)
def test_malformed_envelope_raises(body):
    with pytest.raises(CompletionError):
        _complete(lambda request: httpx.Response(200, json=body))


def test_non_json_envelope_raises():
    with pytest.raises(CompletionError):
        _complete(lambda request: httpx.Response(200, text="<html>gateway</html>"))


def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(CompletionError) as excinfo:
        _complete(handler)

    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
