"""Tests for chat-completion providers (httpx mocked)."""

import json
from unittest.mock import patch

import httpx
import pytest

from src.commentguard.classifier.providers import (
    ConfigurationError,
    OpenAIProvider,
    OpenRouterProvider,
    RateLimited,
    Success,
    TransientError,
    compute_retry_at,
    parse_reset_timestamp,
)
from src.commentguard.models import Label

NOW = 1_700_000_000.0


def completion(content, tokens=57, **extra):
    body = {"choices": [{"message": {"content": content}}], "usage": {"total_tokens": tokens}}
    body.update(extra)
    return body


@pytest.fixture
def mock_client():
    with patch("httpx.Client") as MockClient:
        yield MockClient


@pytest.fixture
def provider(mock_client):
    return OpenRouterProvider(api_key="sk-or-test", clock=lambda: NOW)


class TestHeaderParsing:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1700000030", 1700000030.0),
            ("1700000030000", 1700000030.0),
            ("1700000030500", 1700000030.5),
            ("0", None),
            ("-5", None),
            ("soon", None),
            ("inf", None),
            (None, None),
        ],
    )
    def test_parse_reset_timestamp(self, value, expected):
        assert parse_reset_timestamp(value) == expected

    def test_retry_after_seconds_preferred(self):
        headers = httpx.Headers({"Retry-After": "30", "X-RateLimit-Reset": "1700009999"})

        assert compute_retry_at(headers, NOW) == NOW + 30

    def test_retry_after_http_date(self):
        headers = httpx.Headers({"Retry-After": "Tue, 14 Nov 2023 22:14:20 GMT"})

        assert compute_retry_at(headers, NOW) == NOW + 60

    def test_reset_in_milliseconds(self):
        headers = httpx.Headers({"x-ratelimit-reset": str(int((NOW + 45) * 1000))})

        assert compute_retry_at(headers, NOW) == NOW + 45

    def test_past_or_missing_values(self):
        assert compute_retry_at(httpx.Headers({"x-ratelimit-reset": "1600000000"}), NOW) is None
        assert compute_retry_at(httpx.Headers({"Retry-After": "0"}), NOW) is None
        assert compute_retry_at(httpx.Headers({}), NOW) is None


class TestProviderSetup:
    def test_openrouter_client_headers(self, mock_client):
        OpenRouterProvider(api_key="sk-or-test", timeout=20)

        kwargs = mock_client.call_args.kwargs
        assert kwargs["timeout"] == 20
        assert kwargs["headers"]["Authorization"] == "Bearer sk-or-test"
        assert kwargs["headers"]["X-Title"] == "Comment Guard"

    def test_default_base_urls(self, mock_client):
        assert OpenRouterProvider(api_key="k").base_url == "https://openrouter.ai/api/v1"
        assert OpenAIProvider(api_key="k").base_url == "https://api.openai.com/v1"
        assert OpenAIProvider(api_key="k", base_url="http://proxy/v1/").base_url == "http://proxy/v1"

    def test_names(self, mock_client):
        assert OpenRouterProvider(api_key="k").name == "openrouter"
        assert OpenAIProvider(api_key="k").name == "openai"

    def test_missing_key_raises_configuration_error(self, mock_client):
        provider = OpenRouterProvider(api_key="  ")

        assert provider.is_available() is False
        with pytest.raises(ConfigurationError):
            provider.call("m", "sys", "user")
        mock_client.return_value.post.assert_not_called()

    def test_context_manager_closes_client(self, mock_client):
        with OpenRouterProvider(api_key="k"):
            pass

        mock_client.return_value.close.assert_called_once()


class TestCall:
    def test_request_payload(self, provider, mock_client):
        mock_client.return_value.post.return_value = httpx.Response(
            200, json=completion('{"label":"valid","confidence":0.9,"reasons":[]}')
        )

        provider.call("meta-llama/llama-3.2-3b-instruct:free", "SYS", "USER", timeout=7)

        args, kwargs = mock_client.return_value.post.call_args
        assert args[0] == "https://openrouter.ai/api/v1/chat/completions"
        assert kwargs["timeout"] == 7
        assert kwargs["json"] == {
            "model": "meta-llama/llama-3.2-3b-instruct:free",
            "temperature": 0,
            "max_tokens": 48,
            "messages": [
                {"role": "system", "content": "SYS"},
                {"role": "user", "content": "USER"},
            ],
        }

    def test_success(self, provider, mock_client):
        body = completion('{"label":"spam","confidence":0.93,"reasons":["seo"]}', tokens=88)
        mock_client.return_value.post.return_value = httpx.Response(200, json=body)

        outcome = provider.call("m", "sys", "user")

        assert isinstance(outcome, Success)
        assert outcome.verdict.label == Label.SPAM
        assert outcome.verdict.confidence == 0.93
        assert outcome.token_count == 88
        assert json.loads(outcome.raw) == body
        assert outcome.throttle_until is None

    def test_text_completion_shape(self, provider, mock_client):
        mock_client.return_value.post.return_value = httpx.Response(
            200, json={"choices": [{"text": '{"label":"spam","confidence":0.9}'}]}
        )

        outcome = provider.call("m", "sys", "user")

        assert outcome.verdict.label == Label.SPAM
        assert outcome.token_count == 0

    def test_unparseable_content_uses_fallback_parse(self, provider, mock_client):
        mock_client.return_value.post.return_value = httpx.Response(
            200, json=completion("I believe this is spam")
        )

        outcome = provider.call("m", "sys", "user")

        assert isinstance(outcome, Success)
        assert outcome.verdict.reasons == ["fallback parse"]

    def test_quota_exhausted_on_success_sets_throttle(self, provider, mock_client):
        mock_client.return_value.post.return_value = httpx.Response(
            200,
            json=completion('{"label":"valid","confidence":0.9}'),
            headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": str(int(NOW + 120) * 1000)},
        )

        outcome = provider.call("m", "sys", "user")

        assert isinstance(outcome, Success)
        assert outcome.throttle_until == NOW + 120

    def test_quota_remaining_no_throttle(self, provider, mock_client):
        mock_client.return_value.post.return_value = httpx.Response(
            200,
            json=completion('{"label":"valid","confidence":0.9}'),
            headers={"x-ratelimit-remaining": "12", "x-ratelimit-reset": str(int(NOW + 120))},
        )

        assert provider.call("m", "sys", "user").throttle_until is None

    def test_rate_limited_with_retry_after(self, provider, mock_client):
        mock_client.return_value.post.return_value = httpx.Response(
            429, text='{"error":"rate limited"}', headers={"Retry-After": "30"}
        )

        outcome = provider.call("m", "sys", "user")

        assert isinstance(outcome, RateLimited)
        assert outcome.retry_at == NOW + 30
        assert outcome.raw == '{"error":"rate limited"}'

    def test_rate_limited_without_headers_uses_default(self, mock_client):
        provider = OpenRouterProvider(api_key="k", default_retry_seconds=90, clock=lambda: NOW)
        mock_client.return_value.post.return_value = httpx.Response(429, text="")

        outcome = provider.call("m", "sys", "user")

        assert outcome.retry_at == NOW + 90
        assert json.loads(outcome.raw)["status"] == 429

    @pytest.mark.parametrize(
        "headers",
        [
            {"Retry-After": "0"},
            {"X-RateLimit-Reset": "1600000000"},
        ],
    )
    def test_rate_limited_with_immediate_retry_has_no_window(self, mock_client, headers):
        provider = OpenRouterProvider(api_key="k", default_retry_seconds=90, clock=lambda: NOW)
        mock_client.return_value.post.return_value = httpx.Response(429, text="", headers=headers)

        outcome = provider.call("m", "sys", "user")

        assert isinstance(outcome, RateLimited)
        assert outcome.retry_at == NOW

    def test_unparseable_retry_after_uses_default(self, mock_client):
        provider = OpenRouterProvider(api_key="k", default_retry_seconds=90, clock=lambda: NOW)
        mock_client.return_value.post.return_value = httpx.Response(
            429, text="", headers={"Retry-After": "later"}
        )

        assert provider.call("m", "sys", "user").retry_at == NOW + 90

    def test_server_error(self, provider, mock_client):
        mock_client.return_value.post.return_value = httpx.Response(503, text="upstream down")

        outcome = provider.call("m", "sys", "user")

        assert isinstance(outcome, TransientError)
        assert outcome.message == "HTTP 503 - upstream down"
        assert outcome.raw == "upstream down"
        assert outcome.status_code == 503

    def test_empty_error_body_gets_synthetic_raw(self, provider, mock_client):
        mock_client.return_value.post.return_value = httpx.Response(500, text="")

        outcome = provider.call("m", "sys", "user")

        assert json.loads(outcome.raw) == {"error": "http_error", "status": 500, "model": "m"}

    def test_invalid_json_body(self, provider, mock_client):
        mock_client.return_value.post.return_value = httpx.Response(200, text="<html>oops</html>")

        outcome = provider.call("m", "sys", "user")

        assert isinstance(outcome, TransientError)
        assert outcome.raw == "<html>oops</html>"

    def test_body_without_choices(self, provider, mock_client):
        mock_client.return_value.post.return_value = httpx.Response(200, json={"error": "x"})

        assert isinstance(provider.call("m", "sys", "user"), TransientError)

    def test_timeout(self, provider, mock_client):
        mock_client.return_value.post.side_effect = httpx.ReadTimeout("timed out")

        outcome = provider.call("m", "sys", "user")

        assert isinstance(outcome, TransientError)
        assert outcome.message.startswith("timeout")
        assert json.loads(outcome.raw)["error"] == "timeout"

    def test_transport_error(self, provider, mock_client):
        mock_client.return_value.post.side_effect = httpx.ConnectError("refused")

        outcome = provider.call("m", "sys", "user")

        assert isinstance(outcome, TransientError)
        payload = json.loads(outcome.raw)
        assert payload["error"] == "transport_error"
        assert payload["type"] == "ConnectError"
