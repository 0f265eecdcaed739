"""
Per-model token pricing.

Prices are USD per 1K tokens. Chat models have prompt/completion (and
optionally cached-prompt) prices; embedding models only have an input price.
"""

import re
from typing import Dict, Optional

MODEL_PRICING: Dict[str, Dict[str, float]] = {
    'gpt-5-mini': {'prompt': 0.00025, 'completion': 0.002, 'cached': 0.000025},
    'gpt-5-nano': {'prompt': 0.00005, 'completion': 0.0004, 'cached': 0.000005},
    'gpt-4-turbo-preview': {'prompt': 0.01, 'completion': 0.03},
    'text-embedding-ada-002': {'input': 0.0001},
    'text-embedding-3-small': {'input': 0.00002},
}

# Used for models missing from MODEL_PRICING
FALLBACK_PRICING = {'prompt': 0.01, 'completion': 0.03}

_DATE_SUFFIX = re.compile(r'-\d{4}-\d{2}-\d{2}$')


def get_model_pricing(model: Optional[str]) -> Optional[Dict[str, float]]:
    """Pricing for ``model``, matching dated snapshots by their longest known prefix."""
    if not model:
        return None
    if model in MODEL_PRICING:
        return MODEL_PRICING[model]
    matches = [name for name in MODEL_PRICING if model.startswith(name + '-')]
    if matches:
        return MODEL_PRICING[max(matches, key=len)]
    return None


def calculate_token_cost(model: Optional[str], prompt_tokens: int = 0, completion_tokens: int = 0,
                         input_tokens: int = 0, is_cached: bool = False) -> float:
    """Cost in USD of one call.

    Raises:
        ValueError: If any token count is negative
    """
    if min(prompt_tokens, completion_tokens, input_tokens) < 0:
        raise ValueError("Invalid token count")

    pricing = get_model_pricing(model)
    if pricing is None:
        return (prompt_tokens * FALLBACK_PRICING['prompt']
                + completion_tokens * FALLBACK_PRICING['completion']) / 1000

    if 'input' in pricing:
        tokens = input_tokens or prompt_tokens
        return tokens * pricing['input'] / 1000

    prompt_price = pricing['cached'] if is_cached and 'cached' in pricing else pricing['prompt']
    return (prompt_tokens * prompt_price + completion_tokens * pricing['completion']) / 1000


def model_category(model: Optional[str]) -> Optional[str]:
    """Family name of a model: the known pricing key, or the name without its date suffix.

    ``gpt-4-turbo-preview`` and its snapshots are grouped as ``gpt-4-turbo``.
    """
    if not model:
        return None
    for name in sorted(MODEL_PRICING, key=len, reverse=True):
        if model == name or model.startswith(name + '-'):
            return 'gpt-4-turbo' if name == 'gpt-4-turbo-preview' else name
    return _DATE_SUFFIX.sub('', model)
