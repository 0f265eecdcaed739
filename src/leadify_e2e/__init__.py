"""
Leadify E2E: integration checks for the real-estate CRM chat platform.

The package bundles REST, Supabase, browser and LLM clients together with
runnable check suites (conversation simulation, token-usage auditing,
admin pages, human handoff, BANT configuration).
"""

__version__ = "1.0.0"
