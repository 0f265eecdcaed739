"""
Direct provider benchmark: one chat completion per configured chat model and
one embedding per embedding model, checking that usage is reported.
"""

import logging
from typing import Optional

from .common import build_verifier
from ..clients.llm_client import LLMCallResult, LLMClient
from ..config import SuiteConfig
from ..reporting import TestReport
from ..tokens.pricing import calculate_token_cost
from ..tokens.usage import TokenUsageLogger

logger = logging.getLogger(__name__)

BENCHMARK_MESSAGES = [
    {'role': 'system', 'content': 'You are a real estate assistant. Answer in one short sentence.'},
    {'role': 'user', 'content': 'I am looking for a 3 bedroom house around $500k. Can you help?'},
]
EMBEDDING_TEXT = "3 bedroom house near good schools with a large backyard"


def _describe(result: LLMCallResult) -> str:
    if result.completion_tokens:
        cost = calculate_token_cost(result.model, result.prompt_tokens, result.completion_tokens)
    else:
        cost = calculate_token_cost(result.model, input_tokens=result.prompt_tokens)
    return (f"{result.model}: {result.prompt_tokens} in / {result.completion_tokens} out, "
            f"{result.latency_ms}ms, ${cost:.6f}")


def run_llm_benchmark(config: SuiteConfig, llm: Optional[LLMClient] = None,
                      track: bool = False, verifier=None) -> TestReport:
    report = TestReport("LLM Benchmark")
    if llm is None:
        if not config.openai.api_key:
            report.skipped("LLM benchmark", "OPENAI_API_KEY not set")
            return report.finish()
        llm = LLMClient(config.openai)

    usage_logger = None
    if track:
        verifier = verifier if verifier is not None else build_verifier(config)
        if verifier is None:
            report.skipped("Token logging", "Supabase not configured; results will not be stored")
        else:
            usage_logger = TokenUsageLogger(verifier, organization_id=config.credentials.organization_id,
                                            source='llm_benchmark')

    def tracked(result: LLMCallResult):
        if usage_logger:
            usage_logger.record(result)
        return result.tracked, _describe(result)

    report.section("Chat completions")
    for model in config.openai.chat_models:
        report.check(f"Chat: {model}",
                     lambda model=model: tracked(llm.chat(model, BENCHMARK_MESSAGES, operation='benchmark_chat')))

    report.section("Embeddings")
    for model in config.openai.embedding_models:
        report.check(f"Embedding: {model}",
                     lambda model=model: tracked(llm.embed(model, EMBEDDING_TEXT, operation='benchmark_embedding')))

    if usage_logger:
        report.section("Token logging")
        expected = len(config.openai.chat_models) + len(config.openai.embedding_models)
        stored = len(usage_logger.recorded)
        report.check("Usage rows stored", lambda: (
            stored > 0, f"{stored}/{expected} rows, {usage_logger.total_tokens} tokens, "
                        f"${usage_logger.total_cost:.6f}"))
    return report.finish()
