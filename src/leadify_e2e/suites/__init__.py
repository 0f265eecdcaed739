"""Runnable check suites; each returns a ``TestReport``."""

from .api_validation import run_api_validation
from .admin_pages import run_admin_pages
from .handoff import run_handoff_flow, run_transfer_ui
from .bant_config import run_bant_config
from .token_tracking import run_token_tracking
from .token_verification import run_token_verification
from .llm_benchmark import run_llm_benchmark
from .simulation import run_simulation

__all__ = [
    'run_api_validation',
    'run_admin_pages',
    'run_handoff_flow',
    'run_transfer_ui',
    'run_bant_config',
    'run_token_tracking',
    'run_token_verification',
    'run_llm_benchmark',
    'run_simulation',
]
