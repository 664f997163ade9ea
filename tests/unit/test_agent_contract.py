"""
Unit Tests for the Agent Contract
=================================

Tests for chat history and agent factory loading.
"""

import pytest

from dexter_bridge.core.agent import (
    AgentConfigError,
    ChatHistory,
    create_agent,
    load_agent_factory,
)
from dexter_bridge.models.schemas import Turn

from tests.utils.mocks import FakeAgent, create_fake_agent


class TestChatHistory:
    """Test in-memory conversation history."""

    def test_query_then_answer(self):
        """Test a turn is opened by the query and completed by the answer."""
        history = ChatHistory(model="gpt-test")
        history.save_user_query("What is AAPL's P/E?")

        assert history.last_turn() == Turn(query="What is AAPL's P/E?", answer="")

        history.save_answer("About 30.", summary="P/E about 30")

        assert history.last_turn() == Turn(
            query="What is AAPL's P/E?", answer="About 30.", summary="P/E about 30"
        )
        assert len(history) == 1

    def test_load_turns_copies(self):
        """Test loaded turns are copied, not shared."""
        stored = [Turn(query="q1", answer="a1")]
        history = ChatHistory()
        history.load_turns(stored)
        history.save_user_query("q2")

        assert [turn.query for turn in history.turns] == ["q1", "q2"]
        assert len(stored) == 1

    def test_answer_requires_open_turn(self):
        """Test answers cannot be saved without a pending query."""
        history = ChatHistory()
        with pytest.raises(ValueError):
            history.save_answer("orphan")

        history.save_user_query("q")
        history.save_answer("a")
        with pytest.raises(ValueError):
            history.save_answer("again")

    def test_empty_history(self):
        """Test an empty history has no last turn."""
        assert ChatHistory().last_turn() is None


class TestLoadAgentFactory:
    """Test factory path resolution."""

    def test_resolves_callable(self):
        """Test a module:callable path imports the factory."""
        assert load_agent_factory("tests.utils.mocks:create_fake_agent") is create_fake_agent

    @pytest.mark.parametrize(
        "path",
        [
            None,
            "",
            "tests.utils.mocks",
            ":create_fake_agent",
            "tests.utils.no_such_module:factory",
            "tests.utils.mocks:no_such_factory",
            "tests.utils.mocks:__all__",
        ],
    )
    def test_invalid_paths(self, path):
        """Test missing, malformed and unresolvable paths raise AgentConfigError."""
        with pytest.raises(AgentConfigError):
            load_agent_factory(path)


class TestCreateAgent:
    """Test building the local agent from settings."""

    async def test_passes_settings(self, test_settings):
        """Test model options reach the factory and unset ones are omitted."""
        test_settings.agent_factory = "tests.utils.mocks:create_fake_agent"
        test_settings.model = "gpt-test"

        agent = await create_agent(test_settings)

        assert isinstance(agent, FakeAgent)
        assert agent.options == {"max_iterations": 10, "model": "gpt-test"}

    async def test_async_factory(self, test_settings):
        """Test awaitable factories are awaited."""
        test_settings.agent_factory = "tests.utils.mocks:create_fake_agent_async"
        test_settings.model_provider = "openai"

        agent = await create_agent(test_settings)

        assert isinstance(agent, FakeAgent)
        assert agent.options["model_provider"] == "openai"

    async def test_uses_global_settings(self, test_settings):
        """Test settings default to the process settings."""
        test_settings.agent_factory = "tests.utils.mocks:create_fake_agent"

        assert isinstance(await create_agent(), FakeAgent)

    async def test_rejects_non_agent(self, test_settings):
        """Test factories must return something with a run method."""
        test_settings.agent_factory = "tests.utils.mocks:create_not_an_agent"

        with pytest.raises(AgentConfigError):
            await create_agent(test_settings)

    async def test_no_factory_configured(self, test_settings):
        """Test a missing factory is a configuration error."""
        with pytest.raises(AgentConfigError):
            await create_agent(test_settings)
