"""
REST API validation: walks the main backend endpoints with the test user.
"""

import logging
from typing import Optional

from .common import first_agent_check, login_check, skip_unless
from ..clients.api_client import CRMApiClient
from ..clients.auth import mint_service_token
from ..config import SuiteConfig
from ..exceptions import SkipCheck
from ..reporting import TestReport
from ..waiting import wait_from_config

logger = logging.getLogger(__name__)

ADMIN_SECTIONS = ('stats', 'team', 'users', 'user_stats', 'organizations', 'issues',
                  'feature_requests', 'ai_analytics')


def _expect_ok(client: CRMApiClient, method: str, path: str, **kwargs):
    response = client.request(method, path, **kwargs)
    return response.ok, f"HTTP {response.status_code} in {response.elapsed:.2f}s"


def run_api_validation(config: SuiteConfig, client: Optional[CRMApiClient] = None) -> TestReport:
    """Run the endpoint walk and return its report."""
    if client is None:
        with CRMApiClient(config.api) as client:
            return run_api_validation(config, client)

    report = TestReport("API Validation")

    report.section("Health")
    report.check("Health endpoint", lambda: _expect_ok(client, 'GET', '/api/health'))

    report.section("Authentication")
    session = login_check(report, client, config)

    report.section("Organization")
    org_id = config.credentials.organization_id
    if session and not org_id:
        org_id = session.user.get('organization_id')

    def get_organization():
        skip_unless(session, "not logged in")
        skip_unless(org_id, "no organization id (set TEST_ORG_ID)")
        organization = client.get_organization(org_id)
        return bool(organization), f"organization {organization.get('name', org_id)}"

    report.check("Get organization", get_organization)

    def get_members():
        skip_unless(session, "not logged in")
        return _expect_ok(client, 'GET', '/api/organization/members')

    report.check("Get organization members", get_members)

    report.section("Agents and conversations")
    agent = first_agent_check(report, client, "Get agents") if session else None
    if not session:
        report.skipped("Get agents", "not logged in")

    def get_conversations():
        skip_unless(session, "not logged in")
        conversations = client.list_conversations()
        return True, f"{len(conversations)} conversation(s)"

    report.check("Get conversations", get_conversations)

    chat_state = {}

    def chat():
        skip_unless(agent, "no agent available")
        reply = client.send_chat("Hello, this is an API validation test", agent['id'])
        chat_state['conversation_id'] = reply.conversation_id
        return bool(reply.conversation_id and (reply.response or reply.is_human_mode)), \
            f"conversation {reply.conversation_id}"

    report.check("Chat endpoint", chat)

    def conversation_messages():
        conversation_id = chat_state.get('conversation_id')
        skip_unless(conversation_id, "chat did not create a conversation")
        messages = wait_from_config(
            lambda: client.get_conversation_messages(conversation_id),
            config.wait,
            description=f"messages in conversation {conversation_id}",
        )
        return True, f"{len(messages)} message(s)"

    report.check("Get conversation messages", conversation_messages)

    def leads():
        skip_unless(session, "not logged in")
        return True, f"{len(client.list_leads())} lead(s)"

    report.check("Get leads", leads)

    report.section("Dashboard and settings")
    for name, path in (("Dashboard summary", '/api/dashboard/summary'),
                       ("Dashboard activity", '/api/dashboard/activity'),
                       ("Get profile", '/api/settings/profile'),
                       ("Priority queue", '/api/conversations/priority-queue')):
        def probe(path=path):
            skip_unless(session, "not logged in")
            return _expect_ok(client, 'GET', path)

        report.check(name, probe)

    def human_agent_dashboard():
        skip_unless(session, "not logged in")
        response = client.request('GET', '/api/human-agents/dashboard')
        if response.status_code == 403:
            raise SkipCheck("test user is not a human agent")
        return response.ok, f"HTTP {response.status_code}"

    report.check("Human agent dashboard", human_agent_dashboard)

    report.section("Admin endpoints")
    run_admin_endpoint_checks(config, report)

    report.section("Logout")
    if session:
        report.check("Logout", client.logout)
    else:
        report.skipped("Logout", "not logged in")

    return report.finish()


def run_admin_endpoint_checks(config: SuiteConfig, report: TestReport,
                              client: Optional[CRMApiClient] = None) -> TestReport:
    """Call every admin endpoint with a minted admin token."""
    creds = config.credentials
    if not creds.jwt_secret:
        for section in ADMIN_SECTIONS:
            report.skipped(f"Admin {section}", "JWT_SECRET not set")
        return report

    if client is None:
        with CRMApiClient(config.api) as client:
            return run_admin_endpoint_checks(config, report, client)

    token = mint_service_token(
        user_id=creds.admin_user_id or "e2e-admin",
        email=creds.admin_email or "admin@example.com",
        secret=creds.jwt_secret,
    )
    admin = client
    admin.token = token

    for section in ADMIN_SECTIONS:
        params = {'page': 1, 'limit': 10} if section == 'users' else {}
        report.check(f"Admin {section}", lambda section=section, params=params: _admin_probe(admin, section, params))

    def user_search():
        term = (creds.admin_email or "admin").split('@')[0]
        data = admin.admin_get('users', search=term)
        return 'users' in data, f"search {term!r}"

    report.check("Admin user search", user_search)
    return report


def _admin_probe(admin: CRMApiClient, section: str, params: dict):
    data = admin.admin_get(section, **params)
    if section == 'users':
        return isinstance(data.get('users'), list), f"{len(data.get('users') or [])} user(s)"
    if section == 'user_stats':
        keys = ('totalUsers', 'activeUsers', 'inactiveUsers', 'suspendedUsers', 'totalOrganizations')
        missing = [k for k in keys if k not in data]
        return not missing, f"missing {missing}" if missing else f"{data['totalUsers']} users"
    return data is not None, "ok"
