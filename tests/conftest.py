"""
Pytest configuration and fixtures for the Leadify E2E toolkit tests.

Nothing here touches the network, Supabase or a browser: clients are
replaced with ``unittest.mock`` objects.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from leadify_e2e.clients.api_client import AuthSession, ChatReply, CRMApiClient
from leadify_e2e.clients.supabase_client import SupabaseVerifier
from leadify_e2e.config import ConfigManager, reset_config

ENV_VARS = (
    'API_BASE_URL', 'NEXT_PUBLIC_API_URL', 'FRONTEND_URL', 'BASE_URL', 'API_TIMEOUT', 'API_MAX_RETRIES',
    'SUPABASE_URL', 'NEXT_PUBLIC_SUPABASE_URL', 'SUPABASE_ANON_KEY', 'NEXT_PUBLIC_SUPABASE_ANON_KEY',
    'SUPABASE_SERVICE_ROLE_KEY', 'SUPABASE_SERVICE_KEY', 'OPENAI_API_KEY', 'OPENAI_BASE_URL',
    'TEST_USER_EMAIL', 'TEST_USER_PASSWORD', 'ADMIN_EMAIL', 'ADMIN_PASSWORD', 'ADMIN_USER_ID',
    'JWT_SECRET', 'TEST_ORG_ID', 'E2E_WAIT_TIMEOUT', 'E2E_HEADLESS', 'E2E_SLOW_MO', 'E2E_ENV',
    'E2E_PASS_THRESHOLD', 'LOG_LEVEL', 'E2E_LOG_FILE',
)

AGENT_ID = "11111111-1111-4111-8111-111111111111"
ORG_ID = "22222222-2222-4222-8222-222222222222"
USER_ID = "33333333-3333-4333-8333-333333333333"


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Environment without any E2E settings and no config file in the cwd."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield monkeypatch
    reset_config()


@pytest.fixture
def suite_config(clean_env, tmp_path):
    """Fully credentialed configuration with fast waits."""
    clean_env.setenv('TEST_USER_EMAIL', 'agent@example.com')
    clean_env.setenv('TEST_USER_PASSWORD', 'secret')
    clean_env.setenv('TEST_ORG_ID', ORG_ID)
    config = ConfigManager(use_dotenv=False).get_suite_config()
    config.wait.timeout = 0.2
    config.wait.interval = 0.01
    config.wait.max_interval = 0.02
    config.reports_dir = tmp_path / "reports"
    config.browser.artifacts_dir = str(tmp_path / "artifacts")
    return config


@pytest.fixture
def agent():
    return {'id': AGENT_ID, 'name': 'Sarah', 'organization_id': ORG_ID, 'organizations': {'name': 'Acme Realty'}}


@pytest.fixture
def mock_api_client(agent):
    """CRM API client mock that logs in, lists one agent and answers chats."""
    client = Mock(spec=CRMApiClient)
    client.token = "test-token"
    client.login.return_value = AuthSession(token="test-token", user={'id': USER_ID}, raw={})
    client.list_agents.return_value = [agent]
    client.send_chat.return_value = ChatReply(conversation_id="conv-1", response="Happy to help!",
                                              is_human_mode=False)
    client.get_conversation_messages.return_value = []
    return client


@pytest.fixture
def mock_verifier():
    """Supabase verifier mock with an empty usage table."""
    verifier = Mock(spec=SupabaseVerifier)
    verifier.table_exists.return_value = True
    verifier.fetch_rows.return_value = []
    verifier.count_rows.return_value = 0
    verifier.list_agents.return_value = []
    verifier.list_organization_members.return_value = []
    return verifier


@pytest.fixture
def sample_usage_rows():
    """Rows as PostgREST returns them from ``ai_token_usage``."""
    now = datetime.now(timezone.utc)
    return [
        {
            'id': 'row-1',
            'model': 'gpt-5-mini-2025-08-07',
            'operation_type': 'bant_extraction',
            'prompt_tokens': 250,
            'completion_tokens': 100,
            'total_tokens': 350,
            'cost': '0.0002625',
            'organization_id': ORG_ID,
            'created_at': now.isoformat(),
        },
        {
            'id': 'row-2',
            'model': 'gpt-5-nano',
            'operation_type': 'intent_classification',
            'prompt_tokens': 80,
            'completion_tokens': 10,
            'total_cost': 0.000008,
            'organization_id': ORG_ID,
            'created_at': (now - timedelta(seconds=5)).isoformat().replace('+00:00', 'Z'),
        },
        {
            'id': 'row-3',
            'model': 'gpt-4-turbo-preview',
            'operation_type': 'chat_reply',
            'prompt_tokens': 500,
            'completion_tokens': 200,
            'total_tokens': 700,
            'cost': 0.011,
            'success': False,
            'organization_id': ORG_ID,
            'created_at': '2025-01-15T10:30:00.12345+00:00',
        },
    ]


class FakeUsageTable:
    """In-memory ``ai_token_usage`` answering the verifier's read methods."""

    def __init__(self):
        self.rows = []

    def add(self, operation_type, total_tokens=100, created_at=None, model='gpt-5-mini'):
        self.rows.append({
            'model': model,
            'operation_type': operation_type,
            'total_tokens': total_tokens,
            'created_at': created_at or datetime.now(timezone.utc),
        })

    def _since(self, since):
        return [r for r in self.rows if since is None or r['created_at'] >= since]

    def fetch_rows(self, table, limit=100, since=None, filters=None, **kwargs):
        return list(reversed(self._since(since)))[:limit]

    def count_rows(self, table, since=None, filters=None):
        return len(self._since(since))


@pytest.fixture
def usage_table():
    return FakeUsageTable()


# Custom pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (several components, mocked services)"
    )
    config.addinivalue_line(
        "markers", "e2e: marks tests as end-to-end tests (full workflow)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (skip in CI)"
    )
