"""Tests for the check suites, run against mocked API, Supabase and LLM clients."""

import asyncio
from unittest.mock import MagicMock, Mock

import pytest
from playwright.sync_api import Error as PlaywrightError

from leadify_e2e.browser import chat_ui
from leadify_e2e.clients.api_client import ApiResponse, ChatReply, CRMApiClient
from leadify_e2e.clients.llm_client import LLMCallResult, LLMClient
from leadify_e2e.config import ConfigManager
from leadify_e2e.conversations.templates import CUSTOM_BANT_CONFIG, TOKEN_AUDIT_SCENARIOS, token_audit_messages
from leadify_e2e.exceptions import ApiRequestError, AuthenticationError, SkipCheck
from leadify_e2e.ids import is_uuid
from leadify_e2e.reporting import TestReport, Verdict
from leadify_e2e.suites import (
    run_admin_pages,
    run_api_validation,
    run_bant_config,
    run_handoff_flow,
    run_llm_benchmark,
    run_simulation,
    run_token_tracking,
    run_token_verification,
    run_transfer_ui,
)
from leadify_e2e.suites import admin_pages
from leadify_e2e.suites.api_validation import ADMIN_SECTIONS, run_admin_endpoint_checks
from leadify_e2e.suites.common import build_verifier, first_agent_check, login_check, skip_unless
from leadify_e2e.tokens.usage import USAGE_TABLE

from conftest import AGENT_ID, ORG_ID, USER_ID, FakeUsageTable


def verdicts(report):
    return {r.name: r.verdict for r in report.results}


@pytest.fixture
def chromium_missing(monkeypatch):
    """Playwright driver whose Chromium launch fails as on a machine without browsers."""
    driver = MagicMock()
    playwright = driver.start.return_value
    playwright.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")
    monkeypatch.setattr('leadify_e2e.browser.session.sync_playwright', lambda: driver)
    return playwright


@pytest.mark.unit
class TestCommon:

    def test_skip_unless(self):
        skip_unless("value", "unused")
        with pytest.raises(SkipCheck, match="no agent"):
            skip_unless(None, "no agent")

    def test_login_check_skips_without_credentials(self, clean_env, mock_api_client):
        config = ConfigManager(use_dotenv=False).get_suite_config()
        report = TestReport("t", echo=False)

        assert login_check(report, mock_api_client, config) is None
        assert report.results[0].verdict == Verdict.SKIP
        mock_api_client.login.assert_not_called()

    def test_login_check_returns_session(self, suite_config, mock_api_client):
        report = TestReport("t", echo=False)

        session = login_check(report, mock_api_client, suite_config)

        assert session.token == "test-token"
        mock_api_client.login.assert_called_once_with('agent@example.com', 'secret')

    def test_first_agent_check_without_agents(self, mock_api_client):
        mock_api_client.list_agents.return_value = []
        report = TestReport("t", echo=False)

        assert first_agent_check(report, mock_api_client) is None
        assert "No agents found" in report.results[0].detail

    def test_build_verifier_needs_supabase(self, suite_config):
        assert build_verifier(suite_config) is None


def api_response(status=200, data=None):
    return ApiResponse(status_code=status, data=data if data is not None else {}, elapsed=0.05)


@pytest.mark.integration
class TestApiValidation:

    @pytest.fixture
    def client(self, mock_api_client):
        def request(method, path, *args, **kwargs):
            if path == '/api/human-agents/dashboard':
                return api_response(403)
            return api_response()

        mock_api_client.request.side_effect = request
        mock_api_client.get_organization.return_value = {'id': ORG_ID, 'name': 'Acme Realty'}
        mock_api_client.list_conversations.return_value = []
        mock_api_client.get_conversation_messages.return_value = [{'content': 'Hello'}]
        mock_api_client.list_leads.return_value = []
        mock_api_client.logout.return_value = True
        return mock_api_client

    def test_endpoint_walk(self, suite_config, client):
        report = run_api_validation(suite_config, client=client)
        results = verdicts(report)

        assert report.fail_count == 0
        assert results["Chat endpoint"] == Verdict.PASS
        assert results["Get conversation messages"] == Verdict.PASS
        assert results["Human agent dashboard"] == Verdict.SKIP
        assert all(results[f"Admin {s}"] == Verdict.SKIP for s in ADMIN_SECTIONS)
        client.get_organization.assert_called_once_with(ORG_ID)

    def test_failing_endpoint_is_recorded(self, suite_config, client):
        client.request.side_effect = lambda method, path, *a, **kw: api_response(500)

        report = run_api_validation(suite_config, client=client)
        results = verdicts(report)

        assert results["Health endpoint"] == Verdict.FAIL
        assert results["Dashboard summary"] == Verdict.FAIL
        assert results["Human agent dashboard"] == Verdict.FAIL
        assert results["Get agents"] == Verdict.PASS

    def test_without_login_everything_else_skips(self, clean_env, client):
        config = ConfigManager(use_dotenv=False).get_suite_config()

        report = run_api_validation(config, client=client)

        assert report.pass_count == 1
        assert report.fail_count == 0
        client.send_chat.assert_not_called()

    def test_admin_endpoints_with_minted_token(self, suite_config):
        suite_config.credentials.jwt_secret = 'test-jwt-secret'
        suite_config.credentials.admin_email = 'admin@example.com'
        admin = Mock(spec=CRMApiClient)

        def admin_get(section, **params):
            if section == 'users':
                return {'users': [{'id': USER_ID}]}
            if section == 'user_stats':
                return {'totalUsers': 3, 'activeUsers': 2, 'inactiveUsers': 1,
                        'suspendedUsers': 0, 'totalOrganizations': 1}
            return {'items': []}

        admin.admin_get.side_effect = admin_get
        report = TestReport("admin", echo=False)

        run_admin_endpoint_checks(suite_config, report, client=admin)

        assert report.pass_count == len(ADMIN_SECTIONS) + 1
        assert admin.token.count('.') == 2
        admin.admin_get.assert_any_call('users', page=1, limit=10)
        admin.admin_get.assert_any_call('users', search='admin')

    def test_user_stats_missing_keys_fails(self, suite_config):
        suite_config.credentials.jwt_secret = 'test-jwt-secret'
        admin = Mock(spec=CRMApiClient)
        admin.admin_get.side_effect = lambda section, **params: (
            {'totalUsers': 1} if section == 'user_stats' else {'users': []})
        report = TestReport("admin", echo=False)

        run_admin_endpoint_checks(suite_config, report, client=admin)

        assert [r.name for r in report.failures()] == ["Admin user_stats"]


class HandoffBackend:
    """Conversation state shared by the mocked API client and verifier."""

    def __init__(self, client, verifier=None):
        self.row = {'id': 'conv-9', 'handoff': False, 'mode': 'ai'}
        client.create_conversation.return_value = {'id': 'conv-9'}
        client.send_chat.side_effect = self.send_chat
        client.request_handoff.side_effect = self.request_handoff
        client.transfer_to_ai.side_effect = self.transfer_to_ai
        client.list_handoffs.side_effect = lambda: (
            [{'conversation_id': 'conv-9'}] if self.row['mode'] == 'human' else [])
        if verifier is not None:
            verifier.insert_row.return_value = dict(self.row)
            verifier.get_row.side_effect = lambda table, row_id: dict(self.row)
            verifier.delete_row.return_value = True

    def send_chat(self, message, agent_id, conversation_id=None, source="web"):
        if self.row['mode'] == 'human':
            return ChatReply(conversation_id='conv-9', response=None, is_human_mode=True)
        return ChatReply(conversation_id='conv-9', response="I can help with that")

    def request_handoff(self, conversation_id, reason, priority="high"):
        self.row.update(handoff=True, mode='human')
        return {'id': 'handoff-1', 'assignedTo': {'name': 'Ana'}}

    def transfer_to_ai(self, conversation_id, reason="", acting_user_id=None):
        self.row.update(handoff=False, mode='ai')
        return {'success': True}


@pytest.mark.integration
class TestHandoffFlow:

    def test_round_trip_with_verifier(self, suite_config, mock_api_client, mock_verifier):
        HandoffBackend(mock_api_client, mock_verifier)
        mock_verifier.list_organization_members.return_value = [{'user_id': 'human-agent-1', 'role': 'agent'}]

        report = run_handoff_flow(suite_config, client=mock_api_client, verifier=mock_verifier)

        assert report.pass_count == 12
        assert report.fail_count == 0
        assert mock_api_client.transfer_to_ai.call_args.kwargs['acting_user_id'] == 'human-agent-1'
        mock_verifier.delete_row.assert_called_once_with('conversations', 'conv-9')
        assert is_uuid(mock_verifier.insert_row.call_args.args[1]['id'])
        assert mock_api_client.request_handoff.call_args.args[1].startswith("E2E handoff check test_")

    def test_without_verifier_state_checks_skip(self, suite_config, mock_api_client):
        HandoffBackend(mock_api_client)

        report = run_handoff_flow(suite_config, client=mock_api_client)
        results = verdicts(report)

        assert report.fail_count == 0
        assert results["Conversation switched to human mode"] == Verdict.SKIP
        assert results["Conversation back in AI mode"] == Verdict.SKIP
        assert results["Delete test conversation"] == Verdict.SKIP
        assert mock_api_client.transfer_to_ai.call_args.kwargs['acting_user_id'] == USER_ID

    def test_ai_still_answering_fails(self, suite_config, mock_api_client, mock_verifier):
        HandoffBackend(mock_api_client, mock_verifier)
        mock_api_client.request_handoff.side_effect = lambda *a, **kw: {'id': 'handoff-1'}

        report = run_handoff_flow(suite_config, client=mock_api_client, verifier=mock_verifier)
        results = verdicts(report)

        assert results["AI blocked during handoff"] == Verdict.FAIL
        assert results["Conversation switched to human mode"] == Verdict.FAIL
        assert "WaitTimeoutError" in next(r.detail for r in report.results
                                          if r.name == "Conversation switched to human mode")

    def test_stops_when_conversation_not_created(self, suite_config, mock_api_client):
        mock_api_client.create_conversation.return_value = {}

        report = run_handoff_flow(suite_config, client=mock_api_client)

        assert [r.name for r in report.results][-1] == "Create conversation"
        assert report.fail_count == 1


@pytest.mark.integration
class TestBantConfigSuite:

    def test_lifecycle(self, suite_config, mock_api_client):
        stored = dict(CUSTOM_BANT_CONFIG.to_payload(), bant_scoring_prompt="Score budget first")
        mock_api_client.get_bant_config.side_effect = [None, stored]
        mock_api_client.save_bant_config.return_value = {'success': True}
        mock_api_client.request.side_effect = [api_response(400), api_response(404)]
        mock_api_client.list_leads.return_value = [
            {'conversation_id': 'conv-1', 'bant_score': 82, 'lead_type': 'hot'}]
        mock_api_client.delete_bant_config.return_value = True

        report = run_bant_config(suite_config, client=mock_api_client)

        assert report.pass_count == 10
        assert report.fail_count == 0
        payload = mock_api_client.save_bant_config.call_args.args[1]
        assert payload['budget_weight'] == 35
        assert 'bant_scoring_prompt' not in payload

    def test_accepted_invalid_weights_fail(self, suite_config, mock_api_client):
        mock_api_client.get_bant_config.return_value = CUSTOM_BANT_CONFIG.to_payload()
        mock_api_client.request.side_effect = [api_response(200), api_response(404)]
        mock_api_client.list_leads.return_value = [{'conversation_id': 'conv-1', 'bant_score': 50}]
        mock_api_client.delete_bant_config.return_value = True

        report = run_bant_config(suite_config, client=mock_api_client)

        assert [r.name for r in report.failures()] == ["Reject weights not totalling 100"]

    def test_save_failure_skips_dependent_checks(self, suite_config, mock_api_client):
        mock_api_client.get_bant_config.return_value = None
        mock_api_client.save_bant_config.side_effect = ApiRequestError("Save BANT config: HTTP 500", status_code=500)
        mock_api_client.request.return_value = api_response(400)
        mock_api_client.list_leads.return_value = [{'conversation_id': 'conv-1', 'bant_score': 50}]

        report = run_bant_config(suite_config, client=mock_api_client)
        results = verdicts(report)

        assert results["Save configuration"] == Verdict.FAIL
        assert results["Read configuration back"] == Verdict.SKIP
        assert results["Delete configuration"] == Verdict.SKIP
        assert results["Deleted configuration returns 404"] == Verdict.SKIP


@pytest.mark.integration
class TestTokenTracking:

    @pytest.fixture
    def tracking_backend(self, mock_api_client, usage_table):
        """Chat backend that logs the expected operations, minus any listed in ``dropped``."""
        expected_by_message = dict(token_audit_messages())
        dropped = set()
        counter = {'conversations': 0}

        def send_chat(message, agent_id, conversation_id=None, source="web"):
            for operation in expected_by_message[message]:
                if operation not in dropped:
                    usage_table.add(operation, 120)
            if conversation_id is None:
                counter['conversations'] += 1
                conversation_id = f"conv-{counter['conversations']}"
            return ChatReply(conversation_id=conversation_id, response="Noted")

        mock_api_client.send_chat.side_effect = send_chat
        mock_api_client.dropped = dropped
        return mock_api_client

    def test_every_message_tracked(self, suite_config, tracking_backend, usage_table):
        report = run_token_tracking(suite_config, client=tracking_backend, verifier=usage_table)

        assert report.fail_count == 0
        assert report.pass_count == 3 + len(token_audit_messages()) + 1
        calls = tracking_backend.send_chat.call_args_list
        assert [c.args[0] for c in calls] == [message for message, _ in token_audit_messages()]
        assert all(c.kwargs['source'] == 'website' for c in calls)

    def test_each_scenario_is_its_own_conversation(self, suite_config, tracking_backend, usage_table):
        run_token_tracking(suite_config, client=tracking_backend, verifier=usage_table)

        conversation_ids = [c.args[2] for c in tracking_backend.send_chat.call_args_list]
        offset = 0
        for number, messages in enumerate(TOKEN_AUDIT_SCENARIOS.values(), start=1):
            group = conversation_ids[offset:offset + len(messages)]
            assert group[0] is None
            assert set(group[1:]) <= {f"conv-{number}"}
            offset += len(messages)

    def test_scenarios_reported_in_sections(self, suite_config, tracking_backend, usage_table):
        report = run_token_tracking(suite_config, client=tracking_backend, verifier=usage_table)

        categories = {r.name: r.category for r in report.results}
        assert categories["Tracked: Show me the 10-year payment plan"] == 'Property estimation'
        assert categories["Tracked: Tell me about your company"] == 'Semantic search'
        assert categories["Tracked: asdf"] == 'Edge inputs'

    def test_missing_non_bant_operation_fails(self, suite_config, tracking_backend, usage_table):
        tracking_backend.dropped.add('payment_extraction')

        report = run_token_tracking(suite_config, client=tracking_backend, verifier=usage_table)

        failures = report.failures()
        assert [r.name for r in failures] == ["Tracked: Show me the 10-year payment plan"]
        assert "missing payment_extraction" in failures[0].detail
        assert verdicts(report)["Tracked: Contact me at test@email.com"] == Verdict.PASS

    @pytest.mark.slow
    def test_missing_operations_fail(self, suite_config, mock_api_client, usage_table):
        def send_chat(message, agent_id, conversation_id=None, source="web"):
            usage_table.add('chat_reply', 80)
            return ChatReply(conversation_id='conv-1', response="Noted")

        mock_api_client.send_chat.side_effect = send_chat

        report = run_token_tracking(suite_config, client=mock_api_client, verifier=usage_table)

        failures = report.failures()
        assert len(failures) == len(token_audit_messages())
        assert "missing intent_classification" in failures[0].detail
        assert verdicts(report)["Session usage recorded"] == Verdict.PASS

    def test_skipped_without_supabase(self, suite_config, mock_api_client):
        report = run_token_tracking(suite_config, client=mock_api_client)

        assert report.skip_count == 1
        assert report.executed == 0
        mock_api_client.login.assert_not_called()


@pytest.mark.integration
class TestTokenVerification:

    def test_existing_rows_meet_core_requirements(self, suite_config, mock_verifier, sample_usage_rows):
        mock_verifier.fetch_rows.return_value = sample_usage_rows

        report = run_token_verification(suite_config, verifier=mock_verifier)
        results = verdicts(report)

        assert report.fail_count == 0
        assert results["Core tracking requirements met"] == Verdict.PASS
        assert results["Estimation tracked"] == Verdict.SKIP
        assert results["Lead scoring tracked"] == Verdict.SKIP
        assert mock_verifier.fetch_rows.call_args.kwargs['filters'] == {'organization_id': ORG_ID}

    def test_seed_inserts_sample_rows(self, suite_config, mock_verifier):
        mock_verifier.list_agents.return_value = [{'id': AGENT_ID}]

        report = run_token_verification(suite_config, verifier=mock_verifier, seed=True)

        assert verdicts(report)["Insert sample usage rows"] == Verdict.PASS
        assert mock_verifier.insert_row.call_count == 5
        table, row = mock_verifier.insert_row.call_args_list[0].args
        assert table == USAGE_TABLE
        assert row['agent_id'] == AGENT_ID
        mock_verifier.list_agents.assert_called_once_with(ORG_ID, limit=1)

    def test_seed_requires_uuid_organization(self, suite_config, mock_verifier):
        suite_config.credentials.organization_id = 'acme'

        report = run_token_verification(suite_config, verifier=mock_verifier, seed=True)

        assert verdicts(report)["Insert sample usage rows"] == Verdict.SKIP
        mock_verifier.insert_row.assert_not_called()

    def test_empty_table_fails_core_requirements(self, suite_config, mock_verifier):
        report = run_token_verification(suite_config, verifier=mock_verifier)
        results = verdicts(report)

        assert results["Analyze recent usage"] == Verdict.FAIL
        assert results["GPT-5 models tracked"] == Verdict.FAIL
        assert results["Intent classification tracked"] == Verdict.SKIP
        assert results["Core tracking requirements met"] == Verdict.FAIL

    def test_missing_table_stops_suite(self, suite_config, mock_verifier):
        mock_verifier.table_exists.return_value = False

        report = run_token_verification(suite_config, verifier=mock_verifier)

        assert len(report.results) == 1
        assert report.fail_count == 1


def fake_llm(tokens=30):
    llm = Mock(spec=LLMClient)
    llm.chat.side_effect = lambda model, messages, operation='chat', **kw: LLMCallResult(
        model, operation, tokens * 2 // 3, tokens // 3, tokens, latency_ms=250)
    llm.embed.side_effect = lambda model, text, operation='embedding': LLMCallResult(
        model, operation, tokens, 0, tokens, latency_ms=80)
    return llm


@pytest.mark.integration
class TestLLMBenchmark:

    def test_every_model_reports_usage(self, suite_config):
        llm = fake_llm()

        report = run_llm_benchmark(suite_config, llm=llm)

        models = suite_config.openai.chat_models + suite_config.openai.embedding_models
        assert report.pass_count == len(models)
        assert "Chat: gpt-5-mini" in verdicts(report)
        assert llm.chat.call_args.kwargs['operation'] == 'benchmark_chat'

    def test_tracked_results_are_stored(self, suite_config, mock_verifier):
        report = run_llm_benchmark(suite_config, llm=fake_llm(), track=True, verifier=mock_verifier)

        assert verdicts(report)["Usage rows stored"] == Verdict.PASS
        assert mock_verifier.insert_row.call_count == 4
        rows = [c.args[1] for c in mock_verifier.insert_row.call_args_list]
        assert {row['organization_id'] for row in rows} == {ORG_ID}
        assert rows[-1]['input_tokens'] == 30

    def test_zero_usage_fails(self, suite_config):
        report = run_llm_benchmark(suite_config, llm=fake_llm(tokens=0))

        assert report.pass_count == 0
        assert report.fail_count == 4

    def test_skipped_without_api_key(self, suite_config):
        report = run_llm_benchmark(suite_config)

        assert report.skip_count == 1
        assert report.executed == 0

    def test_track_without_supabase_still_benchmarks(self, suite_config):
        report = run_llm_benchmark(suite_config, llm=fake_llm(), track=True)

        assert verdicts(report)["Token logging"] == Verdict.SKIP
        assert report.pass_count == 4


class FakeAsyncClient:

    instances = []

    def __init__(self, config, token=None):
        self.token = token
        FakeAsyncClient.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def send_chat(self, message, agent_id, conversation_id=None, source="web"):
        await asyncio.sleep(0)
        return ChatReply(conversation_id=conversation_id or 'conv-async', response="Sure")


@pytest.mark.integration
class TestSimulation:

    def test_api_mode(self, suite_config, mock_api_client, mock_verifier, agent):
        mock_verifier.list_agents.return_value = [agent]

        report = run_simulation(suite_config, mode='api', per_category=1,
                                client=mock_api_client, verifier=mock_verifier)
        summary = next(r for r in report.results if r.name == "Simulation success rate")

        assert report.fail_count == 0
        assert summary.value['total'] == 5
        assert verdicts(report)["Category hot"] == Verdict.PASS
        mock_verifier.list_agents.assert_called_once_with(ORG_ID)
        mock_api_client.list_agents.assert_not_called()

    def test_agents_from_api_without_supabase(self, suite_config, mock_api_client):
        report = run_simulation(suite_config, per_category=1, client=mock_api_client)

        assert report.fail_count == 0
        mock_api_client.list_agents.assert_called_once()

    def test_failed_conversations_below_threshold(self, suite_config, mock_api_client):
        mock_api_client.send_chat.side_effect = ApiRequestError("Chat: HTTP 502", status_code=502)

        report = run_simulation(suite_config, per_category=1, client=mock_api_client)
        results = verdicts(report)

        assert results["Simulation success rate"] == Verdict.FAIL
        assert results["Category warm"] == Verdict.FAIL

    def test_no_agents(self, suite_config, mock_api_client):
        mock_api_client.list_agents.return_value = []

        report = run_simulation(suite_config, client=mock_api_client)

        assert report.results[-1].name == "Load agents"
        assert report.results[-1].verdict == Verdict.FAIL

    def test_async_mode(self, suite_config, mock_api_client, monkeypatch):
        FakeAsyncClient.instances = []
        monkeypatch.setattr('leadify_e2e.suites.simulation.AsyncChatClient', FakeAsyncClient)

        report = run_simulation(suite_config, mode='async', per_category=2, concurrency=3,
                                client=mock_api_client)
        summary = next(r for r in report.results if r.name == "Simulation success rate")

        assert summary.verdict == Verdict.PASS
        assert summary.value['total'] == 10
        assert FakeAsyncClient.instances[0].token == "test-token"
        mock_api_client.send_chat.assert_not_called()

    def test_browser_mode(self, suite_config, mock_api_client, monkeypatch):
        monkeypatch.setattr(chat_ui, 'run_browser_conversation',
                            lambda page, frontend_url, planned, timeout: 'conv-ui')
        session = Mock()

        report = run_simulation(suite_config, mode='browser', per_category=1,
                                client=mock_api_client, session=session)

        assert report.fail_count == 0
        session.inject_auth.assert_called_once_with("test-token", {'id': USER_ID})

    def test_browser_launch_failure_is_reported(self, suite_config, mock_api_client, chromium_missing):
        report = run_simulation(suite_config, mode='browser', per_category=1, client=mock_api_client)

        launch = report.results[-1]
        assert launch.name == "Launch browser"
        assert launch.verdict == Verdict.FAIL
        assert "Executable doesn't exist" in launch.detail
        chromium_missing.stop.assert_called_once()

    def test_unknown_mode(self, suite_config):
        with pytest.raises(ValueError, match="Unknown simulation mode"):
            run_simulation(suite_config, mode='carrier-pigeon')


@pytest.mark.integration
class TestAdminPagesSuite:

    def test_skipped_without_admin(self, suite_config):
        report = run_admin_pages(suite_config)

        assert report.skip_count == 1
        assert report.executed == 0

    def test_pages_probed(self, suite_config, monkeypatch):
        suite_config.credentials.admin_email = 'admin@example.com'
        suite_config.credentials.admin_password = 'admin-secret'
        monkeypatch.setattr(admin_pages, 'login_via_ui', lambda page, url, email, password: 'token')
        monkeypatch.setattr(admin_pages, 'read_local_storage', lambda page, key: '{"id": "admin"}')
        monkeypatch.setattr(admin_pages, 'probe_admin_page', lambda page, url, probe: (True, "found title"))
        session = Mock()
        session.console_errors = []
        page = session.page
        page.goto.side_effect = lambda url, **kwargs: setattr(page, 'url', url)

        report = run_admin_pages(suite_config, session=session)

        assert report.fail_count == 0
        assert report.pass_count == 2 + len(admin_pages.ADMIN_PAGES) + 2
        assert session.screenshot.call_count == len(admin_pages.ADMIN_PAGES)

    def test_console_errors_fail(self, suite_config, monkeypatch):
        suite_config.credentials.admin_email = 'admin@example.com'
        suite_config.credentials.admin_password = 'admin-secret'
        monkeypatch.setattr(admin_pages, 'login_via_ui', lambda page, url, email, password: 'token')
        monkeypatch.setattr(admin_pages, 'read_local_storage', lambda page, key: None)
        monkeypatch.setattr(admin_pages, 'probe_admin_page', lambda page, url, probe: (True, "ok"))
        session = Mock()
        session.console_errors = ["Uncaught TypeError: x is undefined"]
        session.page.goto.side_effect = lambda url, **kwargs: setattr(session.page, 'url', url)

        report = run_admin_pages(suite_config, session=session)
        results = verdicts(report)

        assert results["Auth state stored"] == Verdict.FAIL
        assert results["No JavaScript errors"] == Verdict.FAIL

    def test_transfer_ui_skipped_without_test_user(self, clean_env):
        config = ConfigManager(use_dotenv=False).get_suite_config()

        report = run_transfer_ui(config, session=Mock())

        assert report.skip_count == 1
        assert report.executed == 0

    def test_browser_launch_failure_is_reported(self, suite_config, chromium_missing):
        suite_config.credentials.admin_email = 'admin@example.com'
        suite_config.credentials.admin_password = 'admin-secret'

        report = run_admin_pages(suite_config)

        assert report.executed == 1
        assert report.results[0].name == "Launch browser"
        assert report.results[0].verdict == Verdict.FAIL
        assert "Executable doesn't exist" in report.results[0].detail
        chromium_missing.stop.assert_called_once()

    def test_transfer_ui_launch_failure_is_reported(self, suite_config, chromium_missing):
        report = run_transfer_ui(suite_config)

        assert verdicts(report) == {"Launch browser": Verdict.FAIL}
        assert "Executable doesn't exist" in report.results[0].detail


@pytest.mark.integration
class TestClientLifecycle:

    @pytest.mark.parametrize("module,run,kwargs", [
        ('api_validation', run_api_validation, {}),
        ('handoff', run_handoff_flow, {}),
        ('bant_config', run_bant_config, {}),
        ('token_tracking', run_token_tracking, {'verifier': FakeUsageTable()}),
        ('simulation', run_simulation, {}),
    ])
    def test_internal_client_is_closed(self, suite_config, mock_api_client, monkeypatch, module, run, kwargs):
        mock_api_client.login.side_effect = AuthenticationError("Invalid credentials")
        mock_api_client.list_agents.return_value = []
        factory = MagicMock()
        factory.return_value.__enter__.return_value = mock_api_client
        monkeypatch.setattr(f'leadify_e2e.suites.{module}.CRMApiClient', factory)

        report = run(suite_config, **kwargs)

        assert report.fail_count >= 1
        factory.assert_called_once_with(suite_config.api)
        factory.return_value.__exit__.assert_called_once()

    def test_passed_client_is_left_open(self, suite_config, mock_api_client):
        mock_api_client.login.side_effect = AuthenticationError("Invalid credentials")

        run_bant_config(suite_config, client=mock_api_client)

        mock_api_client.close.assert_not_called()
