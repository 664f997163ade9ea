"""
Unit Tests for Turn Transports
==============================

Tests for transport selection, hosted-run requests and answer extraction.
"""

import pytest
from pydantic import ValidationError

from dexter_bridge.api.sse.parser import SSEMessage
from dexter_bridge.api.sse.transports import (
    LocalTransport,
    RemoteAnswerExtractor,
    RemoteTransport,
    message_text,
    select_transport,
)
from dexter_bridge.config.settings import Settings


class TestSelectTransport:
    """Test transport selection from settings."""

    def test_local_by_default(self, test_settings):
        """Test the in-process agent is used without hosted configuration."""
        assert select_transport(test_settings) == LocalTransport()

    def test_remote_requires_url_and_key(self, test_settings):
        """Test a URL alone does not enable the hosted run."""
        test_settings.langsmith_deployment_url = "https://deploy.example"
        assert isinstance(select_transport(test_settings), LocalTransport)

        test_settings.langsmith_api_key = "secret"
        transport = select_transport(test_settings)

        assert isinstance(transport, RemoteTransport)
        assert transport.deployment_url == "https://deploy.example"
        assert transport.api_key == "secret"
        assert transport.kind == "remote"


class TestRemoteTransport:
    """Test hosted-run request construction."""

    @pytest.fixture
    def transport(self) -> RemoteTransport:
        return RemoteTransport(deployment_url="https://deploy.example/", api_key="secret")

    def test_stream_url(self, transport: RemoteTransport):
        """Test the stream endpoint is joined without a double slash."""
        assert transport.stream_url == "https://deploy.example/runs/stream"

    def test_headers(self, transport: RemoteTransport):
        """Test the API key and session id travel as headers."""
        headers = transport.headers("web-1")
        assert headers["x-api-key"] == "secret"
        assert headers["x-session-id"] == "web-1"
        assert headers["Content-Type"] == "application/json"

    def test_request_body(self, transport: RemoteTransport):
        """Test the run request carries the query and session id."""
        body = transport.request_body("What is NVDA revenue?", "web-1")

        assert body["assistant_id"] == "dexter"
        assert body["input"] == {"messages": [{"role": "human", "content": "What is NVDA revenue?"}]}
        assert body["config"]["configurable"]["x-session-id"] == "web-1"


class TestMessageText:
    """Test text extraction from message chunks."""

    @pytest.mark.parametrize(
        "message, expected",
        [
            ({"content": "plain"}, "plain"),
            ({"content": ["a", {"type": "text", "text": "b"}, {"type": "image_url"}]}, "ab"),
            ({"content": None, "text": "fallback"}, "fallback"),
            ({"content": "", "text": "ignored"}, ""),
            ({"content": 42}, ""),
            ({}, ""),
        ],
    )
    def test_message_text(self, message, expected):
        assert message_text(message) == expected


class TestRemoteAnswerExtractor:
    """Test answer extraction from hosted-run message events."""

    @pytest.fixture
    def extractor(self) -> RemoteAnswerExtractor:
        return RemoteAnswerExtractor()

    def test_partial_events_yield_deltas(self, extractor: RemoteAnswerExtractor):
        """Test partial message chunks become deltas."""
        message = SSEMessage(event="messages/partial", data=[{"id": "run-1", "content": "Hel"}])

        assert extractor.extract(message) == "Hel"
        assert extractor.seen_partial

    def test_final_events_ignored_after_partial(self, extractor: RemoteAnswerExtractor):
        """Test the first partial event suppresses final events."""
        extractor.extract(SSEMessage(event="messages/partial", data=[{"id": "run-1", "content": "Hi"}]))

        final = SSEMessage(event="messages/complete", data=[{"id": "run-1", "content": "Hi"}])
        assert extractor.extract(final) == ""

    def test_final_events_without_partial(self, extractor: RemoteAnswerExtractor):
        """Test final events carry the answer when no partial was seen."""
        for event in ("messages", "messages/complete"):
            message = SSEMessage(event=event, data=[{"id": "run-9", "content": "Answer"}])
            assert RemoteAnswerExtractor().extract(message) == "Answer"

    def test_nested_run_messages_skipped(self, extractor: RemoteAnswerExtractor):
        """Test messages without the top-level run prefix are ignored."""
        nested = SSEMessage(event="messages/partial", data=[{"id": "tool-call-3", "content": "x"}])
        no_id = SSEMessage(event="messages/partial", data=[{"content": "x"}])

        assert extractor.extract(nested) == ""
        assert extractor.extract(no_id) == ""

    def test_dict_payload(self, extractor: RemoteAnswerExtractor):
        """Test a bare message object is accepted like a one-element list."""
        message = SSEMessage(event="messages/partial", data={"id": "run-1", "content": "Hi"})
        assert extractor.extract(message) == "Hi"

    @pytest.mark.parametrize(
        "message",
        [
            SSEMessage(event="metadata", data={"run_id": "run-1"}),
            SSEMessage(event=None, data=[{"id": "run-1", "content": "x"}]),
            SSEMessage(event="messages/partial", data=[]),
            SSEMessage(event="messages/partial", data="text"),
        ],
    )
    def test_other_events_yield_nothing(self, extractor: RemoteAnswerExtractor, message):
        assert extractor.extract(message) == ""

    def test_custom_prefix(self):
        """Test the run id prefix is configurable."""
        extractor = RemoteAnswerExtractor(run_id_prefix="lc_run--")
        message = SSEMessage(event="messages/partial", data=[{"id": "lc_run--7", "content": "ok"}])
        assert extractor.extract(message) == "ok"


class TestSettingsValidation:
    """Test settings parsing and validation."""

    def test_list_settings_from_strings(self):
        """Test list settings accept comma-separated and JSON strings."""
        settings = Settings(_env_file=None, api_keys="a, b", allowed_hosts='["https://app.example"]')

        assert settings.api_keys == ["a", "b"]
        assert settings.allowed_hosts == ["https://app.example"]

    def test_remote_enabled(self):
        """Test the hosted run needs both URL and key."""
        assert not Settings(_env_file=None, langsmith_deployment_url="https://d").remote_enabled
        assert Settings(
            _env_file=None, langsmith_deployment_url="https://d", langsmith_api_key="k"
        ).remote_enabled

    @pytest.mark.parametrize(
        "overrides",
        [
            {"environment": "staging"},
            {"log_level": "VERBOSE"},
            {"database_url": "mysql://localhost/dexter"},
        ],
    )
    def test_invalid_values(self, overrides):
        """Test invalid environment, log level and database URL are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_log_level_normalised(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize("prefix", ["", "DEXTER_"])
    def test_hosted_deployment_env_names(self, monkeypatch: pytest.MonkeyPatch, prefix):
        """Test the hosted deployment is read with or without the DEXTER_ prefix."""
        for name in ("LANGSMITH_DEPLOYMENT_URL", "LANGSMITH_API_KEY"):
            monkeypatch.delenv(name, raising=False)
            monkeypatch.delenv(f"DEXTER_{name}", raising=False)
        monkeypatch.setenv(f"{prefix}LANGSMITH_DEPLOYMENT_URL", "https://deploy.example")
        monkeypatch.setenv(f"{prefix}LANGSMITH_API_KEY", "secret")

        settings = Settings(_env_file=None)

        assert settings.langsmith_deployment_url == "https://deploy.example"
        assert settings.langsmith_api_key == "secret"
        assert isinstance(select_transport(settings), RemoteTransport)
