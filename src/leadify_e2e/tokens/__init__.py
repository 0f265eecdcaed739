"""Token pricing, usage records and the before/after usage auditor."""

from .pricing import MODEL_PRICING, calculate_token_cost, get_model_pricing, model_category
from .usage import (
    TokenUsageLogger,
    TokenUsageRecord,
    build_usage_record,
    check_tracking_requirements,
    parse_timestamp,
    sample_usage_records,
    summarize_by,
)
from .auditor import MessageAudit, TokenUsageAuditor, UsageDelta, UsageSnapshot

__all__ = [
    'MODEL_PRICING',
    'calculate_token_cost',
    'get_model_pricing',
    'model_category',
    'TokenUsageLogger',
    'TokenUsageRecord',
    'build_usage_record',
    'check_tracking_requirements',
    'parse_timestamp',
    'sample_usage_records',
    'summarize_by',
    'MessageAudit',
    'TokenUsageAuditor',
    'UsageDelta',
    'UsageSnapshot',
]
