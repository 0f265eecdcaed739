"""
Before/after auditor for the ``ai_token_usage`` table.

Whether token tracking "fired" for an action is decided heuristically: take
a snapshot, run the action, then poll until rows for the expected operation
types appear after the action started. Row counts and token sums are
diffed for the report.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from .usage import USAGE_TABLE, TokenUsageRecord
from ..config import WaitConfig
from ..exceptions import WaitTimeoutError
from ..waiting import wait_until

logger = logging.getLogger(__name__)


@dataclass
class UsageSnapshot:
    """State of the usage table at one point in time."""
    taken_at: datetime
    row_count: int
    total_tokens: int
    operations: Dict[str, int] = field(default_factory=dict)


@dataclass
class UsageDelta:
    new_rows: int
    new_tokens: int
    new_operations: Dict[str, int] = field(default_factory=dict)

    @property
    def fired(self) -> bool:
        return self.new_rows > 0


@dataclass
class MessageAudit:
    """Outcome of auditing a single action."""
    expected: List[str]
    observed: List[str]
    missing: List[str]
    delta: Optional[UsageDelta] = None
    result: Any = None
    records: List[TokenUsageRecord] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenUsageAuditor:
    """Snapshots and diffs ``ai_token_usage`` around actions."""

    def __init__(self, verifier, wait_config: Optional[WaitConfig] = None,
                 organization_id: Optional[str] = None, window: int = 500,
                 clock: Callable[[], datetime] = _now):
        self.verifier = verifier
        self.wait_config = wait_config or WaitConfig()
        self.organization_id = organization_id
        self.window = window
        self.clock = clock

    def _filters(self) -> Optional[Dict[str, Any]]:
        return {'organization_id': self.organization_id} if self.organization_id else None

    def fetch_records(self, since: Optional[datetime] = None, limit: Optional[int] = None) -> List[TokenUsageRecord]:
        rows = self.verifier.fetch_rows(USAGE_TABLE, limit=limit or self.window, since=since,
                                        filters=self._filters())
        return [TokenUsageRecord.from_row(row) for row in rows]

    def snapshot(self, since: Optional[datetime] = None) -> UsageSnapshot:
        """Count rows and tokens, optionally restricted to rows created at or after ``since``."""
        taken_at = self.clock()
        records = self.fetch_records(since=since)
        row_count = self.verifier.count_rows(USAGE_TABLE, since=since, filters=self._filters())

        operations: Dict[str, int] = {}
        for record in records:
            name = record.operation_type or 'unknown'
            operations[name] = operations.get(name, 0) + 1

        return UsageSnapshot(
            taken_at=taken_at,
            row_count=row_count,
            total_tokens=sum(r.total_tokens for r in records),
            operations=operations,
        )

    @staticmethod
    def diff(before: UsageSnapshot, after: UsageSnapshot) -> UsageDelta:
        new_operations = {}
        for name, count in after.operations.items():
            added = count - before.operations.get(name, 0)
            if added > 0:
                new_operations[name] = added
        return UsageDelta(
            new_rows=max(after.row_count - before.row_count, 0),
            new_tokens=max(after.total_tokens - before.total_tokens, 0),
            new_operations=new_operations,
        )

    def wait_for_operations(self, since: datetime, expected_operations: Iterable[str],
                            timeout: Optional[float] = None) -> List[TokenUsageRecord]:
        """Poll until every expected operation type has a row created at or after ``since``.

        With no expected operations this waits for any new row.

        Raises:
            WaitTimeoutError: If the rows do not show up in time
        """
        expected = set(expected_operations)

        def poll():
            records = self.fetch_records(since=since)
            seen = {r.operation_type for r in records}
            if expected and not expected <= seen:
                return None
            return records or None

        return wait_until(
            poll,
            timeout=timeout if timeout is not None else self.wait_config.timeout,
            interval=self.wait_config.interval,
            max_interval=self.wait_config.max_interval,
            description=f"token usage rows for {sorted(expected) or 'any operation'}",
        )

    def audit_message(self, action: Callable[[], Any], expected_operations: Iterable[str],
                      timeout: Optional[float] = None) -> MessageAudit:
        """Run ``action`` and report which expected operations were tracked."""
        expected = list(expected_operations)
        # Small skew allowance between this host and the database clock
        started = self.clock() - timedelta(seconds=1)
        before = self.snapshot(since=started)

        result = action()

        try:
            records = self.wait_for_operations(started, expected, timeout)
        except WaitTimeoutError as e:
            logger.warning(f"Token tracking incomplete: {e}")
            records = self.fetch_records(since=started)

        after = self.snapshot(since=started)
        observed = sorted({r.operation_type for r in records if r.operation_type})
        missing = [op for op in expected if op not in observed]
        return MessageAudit(
            expected=expected,
            observed=observed,
            missing=missing,
            delta=self.diff(before, after),
            result=result,
            records=records,
        )

    def session_summary(self, minutes: int = 2) -> Dict[str, Any]:
        """Totals for rows created in the last ``minutes`` minutes."""
        since = self.clock() - timedelta(minutes=minutes)
        records = self.fetch_records(since=since)
        return {
            'since': since.isoformat(),
            'rows': len(records),
            'total_tokens': sum(r.total_tokens for r in records),
            'total_cost': round(sum(r.cost for r in records), 6),
            'operations': sorted({r.operation_type for r in records if r.operation_type}),
        }
