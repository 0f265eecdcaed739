"""
Token-usage rows: parsing, aggregation and the shared usage logger.

Rows in ``ai_token_usage`` are written by the application; checks only read
them, except for the seed rows inserted by the verification check and the
rows recorded by ``TokenUsageLogger`` for direct provider benchmarks.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .pricing import calculate_token_cost, get_model_pricing, model_category
from ..exceptions import SupabaseQueryError

logger = logging.getLogger(__name__)

USAGE_TABLE = 'ai_token_usage'
DEFAULT_ENDPOINT = '/api/chat'


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a Supabase timestamp into an aware datetime."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip().replace('Z', '+00:00')
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        # Older interpreters reject fractional seconds that are not 3 or 6 digits
        head, _, rest = text.partition('.')
        tz = ''
        for sign in ('+', '-'):
            if sign in rest:
                tz = sign + rest.split(sign, 1)[1]
                break
        parsed = datetime.fromisoformat(head + tz)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class TokenUsageRecord:
    """One ``ai_token_usage`` row."""
    model: Optional[str] = None
    operation_type: Optional[str] = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    input_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    model_category: Optional[str] = None
    organization_id: Optional[str] = None
    agent_id: Optional[str] = None
    conversation_id: Optional[str] = None
    endpoint: Optional[str] = DEFAULT_ENDPOINT
    response_time_ms: Optional[int] = None
    success: bool = True
    created_at: Optional[datetime] = None
    id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def model_key(self) -> str:
        return self.model or self.model_category or 'unknown'

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TokenUsageRecord":
        """Build a record from a table row; tolerates string costs and missing totals."""
        known = {
            'id', 'model', 'model_category', 'operation_type', 'prompt_tokens', 'completion_tokens',
            'input_tokens', 'total_tokens', 'cost', 'total_cost', 'organization_id', 'agent_id',
            'conversation_id', 'endpoint', 'response_time_ms', 'success', 'created_at',
        }
        prompt = _as_int(row.get('prompt_tokens'))
        completion = _as_int(row.get('completion_tokens'))
        input_tokens = _as_int(row.get('input_tokens'))
        total = _as_int(row.get('total_tokens')) or prompt + completion + input_tokens
        cost = row.get('cost') if row.get('cost') is not None else row.get('total_cost')

        return cls(
            id=row.get('id'),
            model=row.get('model'),
            model_category=row.get('model_category'),
            operation_type=row.get('operation_type'),
            prompt_tokens=prompt,
            completion_tokens=completion,
            input_tokens=input_tokens,
            total_tokens=total,
            cost=_as_float(cost),
            organization_id=row.get('organization_id'),
            agent_id=row.get('agent_id'),
            conversation_id=row.get('conversation_id'),
            endpoint=row.get('endpoint'),
            response_time_ms=row.get('response_time_ms'),
            success=row.get('success') is not False,
            created_at=parse_timestamp(row.get('created_at')),
            extra={k: v for k, v in row.items() if k not in known},
        )

    def to_row(self, cost_column: str = 'cost') -> Dict[str, Any]:
        """Row payload for insertion; unset optional columns are omitted."""
        row = {
            'organization_id': self.organization_id,
            'agent_id': self.agent_id,
            'conversation_id': self.conversation_id,
            'model': self.model,
            'model_category': self.model_category,
            'operation_type': self.operation_type,
            'prompt_tokens': self.prompt_tokens,
            'completion_tokens': self.completion_tokens,
            'input_tokens': self.input_tokens,
            'total_tokens': self.total_tokens,
            cost_column: self.cost,
            'endpoint': self.endpoint,
            'response_time_ms': self.response_time_ms,
            'success': self.success,
        }
        return {k: v for k, v in row.items() if v is not None}


def build_usage_record(model: str, operation_type: str, prompt_tokens: int = 0,
                       completion_tokens: int = 0, input_tokens: int = 0,
                       organization_id: Optional[str] = None, agent_id: Optional[str] = None,
                       conversation_id: Optional[str] = None, endpoint: Optional[str] = None,
                       response_time_ms: Optional[int] = None, success: Any = True,
                       is_cached: bool = False) -> TokenUsageRecord:
    """Build a priced record the way the application does for a provider call."""
    return TokenUsageRecord(
        organization_id=organization_id,
        conversation_id=conversation_id,
        agent_id=agent_id,
        model=model,
        model_category=model_category(model),
        operation_type=operation_type,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        input_tokens=input_tokens,
        total_tokens=prompt_tokens + completion_tokens + input_tokens,
        cost=calculate_token_cost(model, prompt_tokens, completion_tokens, input_tokens, is_cached),
        endpoint=endpoint or DEFAULT_ENDPOINT,
        response_time_ms=response_time_ms,
        success=success is not False,
    )


@dataclass
class UsageBreakdown:
    """Aggregated usage for one model or operation type."""
    count: int = 0
    tokens: int = 0
    cost: float = 0.0

    def add(self, record: TokenUsageRecord):
        self.count += 1
        self.tokens += record.total_tokens
        self.cost += record.cost


def summarize_by(records: Iterable[TokenUsageRecord], key: str = 'model') -> Dict[str, UsageBreakdown]:
    """Group records by ``model`` or ``operation_type``."""
    if key not in ('model', 'operation_type'):
        raise ValueError(f"Cannot summarize by {key!r}")

    summary: Dict[str, UsageBreakdown] = {}
    for record in records:
        name = record.model_key if key == 'model' else (record.operation_type or 'unknown')
        summary.setdefault(name, UsageBreakdown()).add(record)
    return summary


@dataclass
class TrackingRequirements:
    """Which model and operation families appear in the usage rows."""
    gpt5: bool = False
    mini: bool = False
    nano: bool = False
    gpt4: bool = False
    bant: bool = False
    reply: bool = False
    scoring: bool = False
    estimation: bool = False
    intent: bool = False

    CORE = ('gpt5', 'mini', 'nano', 'bant', 'reply')

    @property
    def core_met(self) -> bool:
        return all(getattr(self, name) for name in self.CORE)

    def missing_core(self) -> List[str]:
        return [name for name in self.CORE if not getattr(self, name)]


def check_tracking_requirements(records: Iterable[TokenUsageRecord]) -> TrackingRequirements:
    """Flag the model families and operation types present in ``records``."""
    req = TrackingRequirements()
    for record in records:
        model = record.model_key.lower()
        operation = (record.operation_type or '').lower()

        req.gpt5 = req.gpt5 or 'gpt-5' in model
        req.mini = req.mini or 'mini' in model
        req.nano = req.nano or 'nano' in model
        req.gpt4 = req.gpt4 or 'gpt-4' in model

        req.bant = req.bant or 'bant' in operation
        req.reply = req.reply or 'reply' in operation or 'chat' in operation
        req.scoring = req.scoring or 'scor' in operation
        req.estimation = req.estimation or 'estimation' in operation
        req.intent = req.intent or 'intent' in operation
    return req


def sample_usage_records(organization_id: Optional[str], agent_id: Optional[str]) -> List[TokenUsageRecord]:
    """Seed rows covering every model family and operation the checks look for."""
    common = {'organization_id': organization_id, 'agent_id': agent_id}
    return [
        build_usage_record('gpt-5-mini-2025-08-07', 'bant_extraction', 250, 100,
                           response_time_ms=850, **common),
        build_usage_record('gpt-5-nano-2025-08-07', 'intent_classification', 80, 10,
                           response_time_ms=320, **common),
        build_usage_record('gpt-4-turbo-preview', 'chat_reply', 500, 200,
                           response_time_ms=1500, **common),
        build_usage_record('gpt-5-mini-2025-08-07', 'estimation', 300, 150,
                           endpoint='/api/estimation', response_time_ms=900, **common),
        build_usage_record('text-embedding-3-small', 'semantic_search', input_tokens=120,
                           endpoint='/api/search', response_time_ms=200, **common),
    ]


class TokenUsageLogger:
    """Shared helper that stores direct provider calls in ``ai_token_usage``.

    Tracking is best effort: a failed insert is logged and returns None so a
    benchmark result is not lost because the usage table rejected the row.
    """

    def __init__(self, verifier, organization_id: Optional[str] = None,
                 agent_id: Optional[str] = None, source: Optional[str] = None):
        self.verifier = verifier
        self.organization_id = organization_id
        self.agent_id = agent_id
        self.source = source
        self.recorded: List[TokenUsageRecord] = []

    def record(self, result, operation_type: Optional[str] = None,
               conversation_id: Optional[str] = None, endpoint: Optional[str] = None,
               success: bool = True) -> Optional[TokenUsageRecord]:
        """Record one ``LLMCallResult``."""
        is_embedding = 'input' in (get_model_pricing(result.model) or {})
        record = build_usage_record(
            model=result.model,
            operation_type=operation_type or result.operation,
            prompt_tokens=0 if is_embedding else result.prompt_tokens,
            completion_tokens=0 if is_embedding else result.completion_tokens,
            input_tokens=result.prompt_tokens if is_embedding else 0,
            organization_id=self.organization_id,
            agent_id=self.agent_id,
            conversation_id=conversation_id,
            endpoint=endpoint or (f"e2e:{self.source}" if self.source else None),
            response_time_ms=result.latency_ms,
            success=success,
        )
        try:
            self.verifier.insert_row(USAGE_TABLE, record.to_row())
        except SupabaseQueryError as e:
            logger.warning(f"Could not record token usage for {result.model}: {e}")
            return None

        self.recorded.append(record)
        logger.debug(f"Recorded {record.total_tokens} tokens for {record.model} ({record.operation_type})")
        return record

    @property
    def total_tokens(self) -> int:
        return sum(r.total_tokens for r in self.recorded)

    @property
    def total_cost(self) -> float:
        return sum(r.cost for r in self.recorded)
