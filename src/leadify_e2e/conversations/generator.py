"""
Round-robin conversation planning and replay against the chat endpoint.

For every agent, every category gets ``per_category`` conversations and the
i-th conversation of a category uses template ``i % len(templates)``. With
the default of four per category that is 20 conversations per agent.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from .templates import CONVERSATION_TEMPLATES, ConversationTemplate, LeadCategory
from ..config import WaitConfig
from ..exceptions import ApiRequestError, E2EError
from ..waiting import wait_until

logger = logging.getLogger(__name__)


@dataclass
class PlannedConversation:
    """One conversation to replay."""
    agent_id: str
    agent_name: str
    category: LeadCategory
    index: int
    template: ConversationTemplate

    @property
    def label(self) -> str:
        return f"{self.agent_name}/{self.category.value}#{self.index + 1}"


@dataclass
class ConversationFailure:
    agent_id: str
    category: LeadCategory
    index: int
    error: str


@dataclass
class SimulationStats:
    """Outcome counters for a simulation run."""
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    messages_sent: int = 0
    by_agent: Dict[str, Dict[str, int]] = field(default_factory=dict)
    by_category: Dict[str, Dict[str, int]] = field(default_factory=dict)
    conversation_ids: List[str] = field(default_factory=list)
    failures: List[ConversationFailure] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        return self.succeeded / self.total if self.total else 0.0

    def _bump(self, planned: PlannedConversation, outcome: str):
        for bucket, key in ((self.by_agent, planned.agent_name), (self.by_category, planned.category.value)):
            counts = bucket.setdefault(key, {'success': 0, 'failed': 0})
            counts[outcome] += 1

    def record_success(self, planned: PlannedConversation, conversation_id: Optional[str]):
        self.total += 1
        self.succeeded += 1
        if conversation_id:
            self.conversation_ids.append(conversation_id)
        self._bump(planned, 'success')

    def record_failure(self, planned: PlannedConversation, error: str):
        self.total += 1
        self.failed += 1
        self.failures.append(ConversationFailure(planned.agent_id, planned.category, planned.index, error))
        self._bump(planned, 'failed')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'messages_sent': self.messages_sent,
            'success_rate': round(self.success_rate, 4),
            'by_agent': self.by_agent,
            'by_category': self.by_category,
            'failures': [
                {'agent_id': f.agent_id, 'category': f.category.value, 'index': f.index, 'error': f.error}
                for f in self.failures
            ],
        }


def _agent_fields(agent: Dict[str, Any]):
    agent_id = agent.get('id')
    if not agent_id:
        raise ValueError(f"Agent without id: {agent!r}")
    name = agent.get('name') or agent_id
    organization = agent.get('organizations') or {}
    if isinstance(organization, dict) and organization.get('name'):
        name = f"{name} ({organization['name']})"
    return agent_id, name


class ConversationGenerator:
    """Builds the fixed round-robin conversation plan."""

    def __init__(self, per_category: int = 4, categories: Optional[Sequence[LeadCategory]] = None,
                 templates: Optional[Dict[LeadCategory, List[ConversationTemplate]]] = None):
        if per_category < 1:
            raise ValueError("per_category must be at least 1")
        self.per_category = per_category
        self.categories = list(categories or LeadCategory)
        self.templates = templates or CONVERSATION_TEMPLATES

    def template_for(self, category: LeadCategory, index: int) -> ConversationTemplate:
        options = self.templates[category]
        return options[index % len(options)]

    def plan(self, agents: Iterable[Dict[str, Any]]) -> Iterator[PlannedConversation]:
        for agent in agents:
            agent_id, name = _agent_fields(agent)
            for category in self.categories:
                for index in range(self.per_category):
                    yield PlannedConversation(agent_id, name, category, index,
                                              self.template_for(category, index))

    def total_for(self, agent_count: int) -> int:
        return agent_count * len(self.categories) * self.per_category


class ConversationSimulator:
    """Replays planned conversations one at a time through ``/api/chat``."""

    def __init__(self, api_client, wait_config: Optional[WaitConfig] = None,
                 verify_messages: bool = False, source: str = "web"):
        self.api_client = api_client
        self.wait_config = wait_config or WaitConfig()
        self.verify_messages = verify_messages
        self.source = source

    def run_conversation(self, planned: PlannedConversation, stats: SimulationStats) -> Optional[str]:
        """Send every message of one conversation; returns the conversation id."""
        conversation_id = None
        for message in planned.template.messages:
            reply = self.api_client.send_chat(message, planned.agent_id, conversation_id, source=self.source)
            stats.messages_sent += 1
            if not reply.conversation_id:
                raise ApiRequestError("Chat reply did not include a conversation id")
            if not (reply.response or reply.is_human_mode):
                raise ApiRequestError(f"Empty reply to {message!r}")
            conversation_id = reply.conversation_id

        if self.verify_messages and conversation_id:
            expected = len(planned.template)
            wait_until(
                lambda: len(self.api_client.get_conversation_messages(conversation_id)) >= expected,
                timeout=self.wait_config.timeout,
                interval=self.wait_config.interval,
                max_interval=self.wait_config.max_interval,
                description=f"{expected} stored messages in {conversation_id}",
            )
        return conversation_id

    def run(self, plan: Iterable[PlannedConversation]) -> SimulationStats:
        stats = SimulationStats()
        for planned in plan:
            try:
                conversation_id = self.run_conversation(planned, stats)
            except E2EError as e:
                logger.warning(f"Conversation {planned.label} failed: {e}")
                stats.record_failure(planned, str(e))
                continue
            logger.info(f"Conversation {planned.label} completed ({conversation_id})")
            stats.record_success(planned, conversation_id)
        return stats


class AsyncConversationSimulator:
    """Runs planned conversations concurrently, messages within one conversation in order."""

    def __init__(self, chat_client, concurrency: int = 5, source: str = "web"):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.chat_client = chat_client
        self.concurrency = concurrency
        self.source = source

    async def _run_one(self, planned: PlannedConversation, semaphore: asyncio.Semaphore,
                       stats: SimulationStats):
        async with semaphore:
            conversation_id = None
            try:
                for message in planned.template.messages:
                    reply = await self.chat_client.send_chat(message, planned.agent_id, conversation_id,
                                                             source=self.source)
                    stats.messages_sent += 1
                    if not reply.conversation_id:
                        raise ApiRequestError("Chat reply did not include a conversation id")
                    if not (reply.response or reply.is_human_mode):
                        raise ApiRequestError(f"Empty reply to {message!r}")
                    conversation_id = reply.conversation_id
            except E2EError as e:
                logger.warning(f"Conversation {planned.label} failed: {e}")
                stats.record_failure(planned, str(e))
                return
            stats.record_success(planned, conversation_id)

    async def run(self, plan: Iterable[PlannedConversation]) -> SimulationStats:
        stats = SimulationStats()
        semaphore = asyncio.Semaphore(self.concurrency)
        await asyncio.gather(*(self._run_one(p, semaphore, stats) for p in plan))
        return stats
