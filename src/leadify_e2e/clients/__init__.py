"""Clients for the backend REST API, Supabase, the LLM provider and JWT minting."""

from .api_client import ApiResponse, AsyncChatClient, AuthSession, ChatReply, CRMApiClient
from .supabase_client import SupabaseVerifier
from .llm_client import LLMCallResult, LLMClient
from .auth import decode_service_token, mint_service_token

__all__ = [
    'ApiResponse',
    'AsyncChatClient',
    'AuthSession',
    'ChatReply',
    'CRMApiClient',
    'SupabaseVerifier',
    'LLMCallResult',
    'LLMClient',
    'decode_service_token',
    'mint_service_token',
]
