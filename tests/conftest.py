"""
Shared fixtures: a small campaign catalog, a scripted text generator and
test settings.
"""

import pytest

from src.config import Settings
from src.core.llm_service import LLMService
from src.data.store import JsonFileStore

from tests.helpers import ScriptedProvider, make_campaigns, make_users


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        llm_provider="mock",
        jwt_secret="test-secret",
        planner_system_prompt="",
        executor_system_prompt="",
        llm_timeout_seconds=5.0,
    )


@pytest.fixture
def store():
    return JsonFileStore(campaigns=make_campaigns(), users=make_users())


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def llm(provider, test_settings):
    return LLMService(provider=provider, config=test_settings)
