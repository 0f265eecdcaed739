"""
BANT conversation simulation.

Plans ``per_category`` conversations per lead category for every agent and
replays them through the chat API (sequentially or concurrently) or through
the chat UI. The run passes when the share of completed conversations
reaches the configured pass threshold.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .common import browser_check, build_verifier, login_check
from ..browser.chat_ui import BrowserConversationSimulator
from ..browser.session import BrowserSession
from ..clients.api_client import AsyncChatClient, CRMApiClient
from ..clients.supabase_client import SupabaseVerifier
from ..config import SuiteConfig
from ..conversations.generator import (
    AsyncConversationSimulator,
    ConversationGenerator,
    ConversationSimulator,
    SimulationStats,
)
from ..reporting import TestReport, Verdict

logger = logging.getLogger(__name__)

SIMULATION_MODES = ('api', 'async', 'browser')


def load_agents(client: CRMApiClient, verifier: Optional[SupabaseVerifier],
                organization_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Agents to simulate against; Supabase when available, otherwise the API."""
    if verifier is not None:
        return verifier.list_agents(organization_id)
    return client.list_agents()


def record_stats(report: TestReport, stats: SimulationStats, threshold: float):
    """Per-category results plus the overall success-rate check."""
    report.section("Results")
    for name, counts in stats.by_category.items():
        total = counts['success'] + counts['failed']
        verdict = Verdict.PASS if counts['failed'] == 0 else Verdict.FAIL
        report.record(f"Category {name}", verdict, f"{counts['success']}/{total} completed")
    for failure in stats.failures[:10]:
        logger.info(f"Failed {failure.agent_id}/{failure.category.value}#{failure.index + 1}: {failure.error}")

    rate = stats.success_rate
    detail = (f"{stats.succeeded}/{stats.total} conversations, {stats.messages_sent} messages, "
              f"{rate * 100:.1f}% (threshold {threshold * 100:.0f}%)")
    verdict = Verdict.PASS if stats.total and rate >= threshold else Verdict.FAIL
    report.record("Simulation success rate", verdict, detail, value=stats.to_dict())


def run_simulation(config: SuiteConfig, mode: str = 'api', per_category: int = 4,
                   concurrency: int = 5, client: Optional[CRMApiClient] = None,
                   verifier: Optional[SupabaseVerifier] = None,
                   session: Optional[BrowserSession] = None) -> TestReport:
    if mode not in SIMULATION_MODES:
        raise ValueError(f"Unknown simulation mode {mode!r}; expected one of {', '.join(SIMULATION_MODES)}")

    if client is None:
        with CRMApiClient(config.api) as client:
            return run_simulation(config, mode, per_category, concurrency, client, verifier, session)

    report = TestReport(f"BANT Conversation Simulation ({mode})")
    verifier = verifier if verifier is not None else build_verifier(config)

    report.section("Setup")
    auth = login_check(report, client, config)

    def agents_check():
        agents = load_agents(client, verifier, config.credentials.organization_id)
        if not agents:
            return False, "No agents found; create an agent first"
        return agents, f"{len(agents)} agent(s)"

    result = report.check("Load agents", agents_check)
    if not result.ok:
        return report.finish()
    agents = result.value

    generator = ConversationGenerator(per_category=per_category)
    plan = list(generator.plan(agents))
    report.passed("Plan conversations",
                  f"{len(plan)} conversations ({per_category} per category x {len(generator.categories)} "
                  f"categories x {len(agents)} agent(s))")

    logger.info(f"Running {len(plan)} conversations in {mode} mode")
    if mode == 'api':
        stats = ConversationSimulator(client, config.wait).run(plan)
    elif mode == 'async':
        stats = asyncio.run(_run_async(config, plan, concurrency, client.token))
    else:
        with browser_check(report, config, session) as session:
            if session is None:
                return report.finish()
            stats = _run_browser(session, config, plan, auth)

    record_stats(report, stats, config.pass_threshold)
    return report.finish()


async def _run_async(config: SuiteConfig, plan, concurrency: int, token: Optional[str]) -> SimulationStats:
    async with AsyncChatClient(config.api, token=token) as chat_client:
        return await AsyncConversationSimulator(chat_client, concurrency=concurrency).run(plan)


def _run_browser(session: BrowserSession, config: SuiteConfig, plan, auth) -> SimulationStats:
    if auth:
        session.inject_auth(auth.token, auth.user)
    simulator = BrowserConversationSimulator(session, config.api.frontend_url,
                                             timeout=int(config.wait.timeout * 1000))
    return simulator.run(plan)
