"""
Custom BANT configuration lifecycle: save, read back, validate, score, delete.
"""

import logging
from typing import Optional

from .common import first_agent_check, login_check, skip_unless
from ..clients.api_client import CRMApiClient
from ..config import SuiteConfig
from ..conversations.templates import CUSTOM_BANT_CONFIG, HIGH_BUDGET_MESSAGE, BantConfig, invalid_bant_payload
from ..reporting import TestReport
from ..waiting import wait_from_config

logger = logging.getLogger(__name__)


def run_bant_config(config: SuiteConfig, client: Optional[CRMApiClient] = None,
                    bant_config: BantConfig = CUSTOM_BANT_CONFIG) -> TestReport:
    if client is None:
        with CRMApiClient(config.api) as client:
            return run_bant_config(config, client, bant_config)

    report = TestReport("Custom BANT Configuration")

    report.section("Setup")
    if not login_check(report, client, config):
        return report.finish()
    agent = first_agent_check(report, client)
    if not agent:
        return report.finish()
    agent_id = agent['id']

    report.section("Configuration")

    def existing():
        current = client.get_bant_config(agent_id)
        return True, "existing configuration will be replaced" if current else "no existing configuration"

    report.check("Read existing configuration", existing)

    def save():
        client.save_bant_config(agent_id, bant_config.to_payload())
        weights = bant_config.weights
        return True, "weights " + " ".join(f"{k[0].upper()}:{v}%" for k, v in weights.items())

    saved = report.check("Save configuration", save)

    def read_back():
        skip_unless(saved.ok, "configuration was not saved")
        stored = BantConfig.model_validate(client.get_bant_config(agent_id) or {})
        if stored.weights != bant_config.weights:
            return False, f"stored weights {stored.weights}"
        prompt_length = len(stored.bant_scoring_prompt or '')
        return True, f"scoring prompt {prompt_length} chars"

    report.check("Read configuration back", read_back)

    def reject_invalid():
        payload = invalid_bant_payload(bant_config)
        response = client.request('POST', f'/api/agents/{agent_id}/bant-config', payload)
        total = BantConfig.model_validate(payload).weights_total
        return response.status_code == 400, f"HTTP {response.status_code} for weights totalling {total}"

    report.check("Reject weights not totalling 100", reject_invalid)

    report.section("Scoring")
    chat_state = {}

    def chat():
        reply = client.send_chat(HIGH_BUDGET_MESSAGE, agent_id)
        chat_state['conversation_id'] = reply.conversation_id
        return bool(reply.conversation_id), f"conversation {reply.conversation_id}"

    report.check("Chat with high-budget lead", chat)

    def lead_scored():
        conversation_id = chat_state.get('conversation_id')
        skip_unless(conversation_id, "chat did not create a conversation")

        def find_lead():
            return next((lead for lead in client.list_leads()
                         if lead.get('conversation_id') == conversation_id), None)

        lead = wait_from_config(find_lead, config.wait, description=f"lead for conversation {conversation_id}")
        return lead.get('bant_score') is not None, \
            f"bant_score={lead.get('bant_score')} lead_type={lead.get('lead_type')}"

    report.check("Lead scored with custom configuration", lead_scored)

    report.section("Cleanup")

    def delete():
        skip_unless(saved.ok, "configuration was not saved")
        return client.delete_bant_config(agent_id)

    deleted = report.check("Delete configuration", delete)

    def gone():
        skip_unless(deleted.ok, "configuration was not deleted")
        response = client.request('GET', f'/api/agents/{agent_id}/bant-config')
        return response.status_code == 404, f"HTTP {response.status_code}"

    report.check("Deleted configuration returns 404", gone)
    return report.finish()
