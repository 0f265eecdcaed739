"""
Live token tracking: send chat messages and audit ``ai_token_usage`` around
each one.
"""

import logging
from typing import Optional

from .common import build_verifier, first_agent_check, login_check
from ..clients.api_client import CRMApiClient
from ..clients.supabase_client import SupabaseVerifier
from ..config import SuiteConfig
from ..conversations.templates import TOKEN_AUDIT_SCENARIOS
from ..reporting import TestReport
from ..tokens.auditor import TokenUsageAuditor

logger = logging.getLogger(__name__)


def run_token_tracking(config: SuiteConfig, client: Optional[CRMApiClient] = None,
                       verifier: Optional[SupabaseVerifier] = None) -> TestReport:
    report = TestReport("Token Tracking (live)")
    verifier = verifier if verifier is not None else build_verifier(config)
    if verifier is None:
        report.skipped("Token tracking", "SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set")
        return report.finish()

    if client is None:
        with CRMApiClient(config.api) as client:
            return run_token_tracking(config, client, verifier)

    report.section("Setup")
    if not login_check(report, client, config):
        return report.finish()
    agent = first_agent_check(report, client)
    if not agent:
        return report.finish()

    auditor = TokenUsageAuditor(
        verifier,
        config.wait,
        organization_id=agent.get('organization_id') or config.credentials.organization_id,
    )

    def baseline():
        snapshot = auditor.snapshot()
        return True, f"{snapshot.row_count} existing row(s)"

    report.check("Usage baseline", baseline)

    for scenario, messages in TOKEN_AUDIT_SCENARIOS.items():
        report.section(scenario)
        # Each scenario is its own conversation
        conversation = {'id': None}
        for message, expected in messages:
            def audit(message=message, expected=expected, conversation=conversation):
                def send():
                    reply = client.send_chat(message, agent['id'], conversation['id'], source='website')
                    conversation['id'] = reply.conversation_id or conversation['id']
                    return reply

                result = auditor.audit_message(send, expected)
                detail = f"observed {', '.join(result.observed) or 'nothing'}"
                if result.missing:
                    detail += f"; missing {', '.join(result.missing)}"
                if result.delta:
                    detail += f"; +{result.delta.new_rows} rows, +{result.delta.new_tokens} tokens"
                return result.complete, detail

            report.check(f"Tracked: {message}", audit)

    report.section("Session")

    def summary():
        totals = auditor.session_summary(minutes=2)
        return totals['rows'] > 0, (f"{totals['rows']} rows, {totals['total_tokens']} tokens, "
                                    f"${totals['total_cost']:.6f}")

    report.check("Session usage recorded", summary)
    return report.finish()
