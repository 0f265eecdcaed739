"""
REST client for the CRM backend.

``CRMApiClient.request`` returns an ``ApiResponse`` for any HTTP status so
checks can assert on expected error codes (400, 403, 404). The named helpers
on top of it raise typed exceptions when the backend does not answer the
way a healthy deployment should.
"""

import json
import time
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import ApiConfig
from ..exceptions import ApiRequestError, AuthenticationError

logger = logging.getLogger(__name__)

USER_AGENT = "LeadifyE2E/1.0.0"

ADMIN_ENDPOINTS = {
    'stats': '/api/admin/dashboard/stats',
    'team': '/api/admin/team',
    'users': '/api/admin/users',
    'user_stats': '/api/admin/users/stats',
    'organizations': '/api/admin/organizations',
    'issues': '/api/admin/issues',
    'feature_requests': '/api/admin/feature-requests',
    'ai_analytics': '/api/admin/ai-analytics/summary',
}


@dataclass
class ApiResponse:
    """Decoded backend response."""
    status_code: int
    data: Any = None
    text: str = ""
    elapsed: float = 0.0
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def error_message(self) -> str:
        if isinstance(self.data, dict):
            for key in ('error', 'message', 'detail'):
                if self.data.get(key):
                    return str(self.data[key])
        return self.text[:200] or f"HTTP {self.status_code}"


@dataclass
class AuthSession:
    """Result of a successful login."""
    token: str
    user: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> Optional[str]:
        return self.user.get('id')


@dataclass
class ChatReply:
    """Normalized ``/api/chat`` response."""
    conversation_id: Optional[str]
    response: Optional[str]
    is_human_mode: bool = False
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], fallback_conversation_id: Optional[str] = None) -> "ChatReply":
        payload = payload or {}
        return cls(
            conversation_id=payload.get('conversationId') or payload.get('conversation_id') or fallback_conversation_id,
            response=payload.get('response') or payload.get('message'),
            is_human_mode=bool(payload.get('isHumanMode', False)),
            raw=payload,
        )


def unwrap_list(data: Any, key: str) -> List[Any]:
    """Return the list from a bare JSON list or an object wrapping it under ``key`` or ``data``."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for candidate in (key, 'data', 'items'):
            value = data.get(candidate)
            if isinstance(value, list):
                return value
            if isinstance(value, dict) and isinstance(value.get(key), list):
                return value[key]
    return []


def extract_token(payload: Dict[str, Any]) -> Optional[str]:
    """Find the access token in a login response."""
    if not isinstance(payload, dict):
        return None
    token = payload.get('token') or payload.get('access_token')
    if not token and isinstance(payload.get('session'), dict):
        token = payload['session'].get('access_token')
    return token


class CRMApiClient:
    """Synchronous client for the backend REST API."""

    def __init__(self, config: ApiConfig, token: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        """Initialize the client.

        Args:
            config: Endpoint and retry settings
            token: Optional bearer token (set later by ``login``)
            session: Optional pre-built session
        """
        self.config = config
        self.base_url = config.base_url.rstrip('/')
        self.token = token

        if session is None:
            session = requests.Session()
            # Default allowed methods: POSTs are never replayed
            retry_strategy = Retry(
                total=config.max_retries,
                backoff_factor=config.retry_backoff_factor,
                status_forcelist=[429, 500, 502, 503, 504],
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

        self.last_request_time = 0.0
        self.rate_limit_delay = config.rate_limit_delay

    def _get_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra:
            headers.update(extra)
        return headers

    def _handle_rate_limit(self):
        """Handle rate limiting with delay."""
        if not self.rate_limit_delay:
            return
        elapsed = time.time() - self.last_request_time
        if elapsed < self.rate_limit_delay:
            time.sleep(self.rate_limit_delay - elapsed)
        self.last_request_time = time.time()

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, json_body: Any = None,
                params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None,
                timeout: Optional[int] = None) -> ApiResponse:
        """Send a request and decode the response without judging its status.

        Raises:
            ApiRequestError: On connection errors and timeouts
        """
        self._handle_rate_limit()
        url = self.url(path)
        start = time.monotonic()
        try:
            response = self.session.request(
                method.upper(),
                url,
                json=json_body,
                params=params,
                headers=self._get_headers(headers),
                timeout=timeout or self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"{method.upper()} {url} failed: {e}")
            raise ApiRequestError(f"{method.upper()} {path} failed: {e}")

        try:
            data = response.json() if response.content else None
        except (json.JSONDecodeError, ValueError):
            data = None

        result = ApiResponse(
            status_code=response.status_code,
            data=data,
            text=response.text,
            elapsed=time.monotonic() - start,
            url=url,
        )
        logger.debug(f"{method.upper()} {path} -> {result.status_code} ({result.elapsed:.2f}s)")
        return result

    def _handle_response(self, response: ApiResponse, action: str) -> Any:
        """Return the payload of a successful response or raise a typed error."""
        if response.status_code == 401:
            raise AuthenticationError(f"{action}: authentication failed")
        if response.status_code == 403:
            raise AuthenticationError(f"{action}: access forbidden")
        if not response.ok:
            raise ApiRequestError(
                f"{action}: HTTP {response.status_code} - {response.error_message()}",
                status_code=response.status_code,
                payload=response.data,
            )
        return response.data if response.data is not None else {}

    # Authentication

    def login(self, email: str, password: str) -> AuthSession:
        """Log in and keep the returned token for later requests."""
        response = self.request('POST', '/api/auth/login', {'email': email, 'password': password})
        if response.status_code in (400, 401, 403):
            raise AuthenticationError(f"Login rejected for {email}: {response.error_message()}")
        data = self._handle_response(response, "Login")

        token = extract_token(data)
        if not token:
            raise AuthenticationError("Login response did not contain a token")

        self.token = token
        logger.info(f"Logged in as {email}")
        return AuthSession(token=token, user=data.get('user') or {}, raw=data)

    def logout(self) -> bool:
        response = self.request('POST', '/api/auth/logout')
        self.token = None
        return response.ok

    def health(self) -> Dict[str, Any]:
        return self._handle_response(self.request('GET', '/api/health'), "Health check")

    # Agents, conversations, messages

    def list_agents(self) -> List[Dict[str, Any]]:
        data = self._handle_response(self.request('GET', '/api/agents'), "List agents")
        return unwrap_list(data, 'agents')

    def list_conversations(self, **filters) -> List[Dict[str, Any]]:
        response = self.request('GET', '/api/conversations', params=filters or None)
        return unwrap_list(self._handle_response(response, "List conversations"), 'conversations')

    def create_conversation(self, agent_id: str, source: str = "web", status: str = "active") -> Dict[str, Any]:
        body = {'agent_id': agent_id, 'status': status, 'source': source}
        data = self._handle_response(self.request('POST', '/api/conversations', body), "Create conversation")
        return data.get('conversation', data) if isinstance(data, dict) else data

    def get_conversation_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        response = self.request('GET', f'/api/conversations/{conversation_id}/messages')
        return unwrap_list(self._handle_response(response, "Conversation messages"), 'messages')

    def post_message(self, conversation_id: str, content: str, sender: str = "user") -> Dict[str, Any]:
        body = {'conversation_id': conversation_id, 'content': content, 'sender': sender}
        return self._handle_response(self.request('POST', '/api/messages', body), "Post message")

    def send_chat(self, message: str, agent_id: str, conversation_id: Optional[str] = None,
                  source: str = "web", user_id: Optional[str] = None) -> ChatReply:
        """Send one chat turn and return the normalized reply."""
        body = {'message': message, 'agentId': agent_id, 'source': source}
        if conversation_id:
            body['conversationId'] = conversation_id
        if user_id:
            body['userId'] = user_id
        data = self._handle_response(self.request('POST', '/api/chat', body), "Chat")
        return ChatReply.from_payload(data, conversation_id)

    # Human handoff

    def request_handoff(self, conversation_id: str, reason: str, priority: str = "high") -> Dict[str, Any]:
        body = {'reason': reason, 'priority': priority}
        response = self.request('POST', f'/api/conversations/{conversation_id}/request-handoff', body)
        data = self._handle_response(response, "Request handoff")
        return data.get('handoff', data)

    def transfer_to_ai(self, conversation_id: str, reason: str = "Returning conversation to AI",
                       acting_user_id: Optional[str] = None) -> Dict[str, Any]:
        headers = {'x-user-id': acting_user_id} if acting_user_id else None
        response = self.request('POST', f'/api/conversations/{conversation_id}/transfer-to-ai',
                                {'reason': reason}, headers=headers)
        return self._handle_response(response, "Transfer to AI")

    def list_handoffs(self) -> List[Dict[str, Any]]:
        response = self.request('GET', '/api/conversations/handoffs')
        return unwrap_list(self._handle_response(response, "List handoffs"), 'handoffs')

    # BANT configuration

    def get_bant_config(self, agent_id: str) -> Optional[Dict[str, Any]]:
        """Return the agent's BANT config, or None when the agent has none."""
        response = self.request('GET', f'/api/agents/{agent_id}/bant-config')
        if response.status_code == 404:
            return None
        data = self._handle_response(response, "Get BANT config")
        return data.get('config', data)

    def save_bant_config(self, agent_id: str, config: Dict[str, Any]) -> Dict[str, Any]:
        response = self.request('POST', f'/api/agents/{agent_id}/bant-config', config)
        data = self._handle_response(response, "Save BANT config")
        return data.get('config', data)

    def delete_bant_config(self, agent_id: str) -> bool:
        response = self.request('DELETE', f'/api/agents/{agent_id}/bant-config')
        self._handle_response(response, "Delete BANT config")
        return True

    # Leads, organizations, admin

    def list_leads(self) -> List[Dict[str, Any]]:
        return unwrap_list(self._handle_response(self.request('GET', '/api/leads'), "List leads"), 'leads')

    def get_organization(self, organization_id: str) -> Dict[str, Any]:
        response = self.request('GET', f'/api/organizations/{organization_id}')
        data = self._handle_response(response, "Get organization")
        return data.get('organization', data)

    def admin_get(self, section: str, **params) -> Any:
        """GET one of the admin endpoints listed in ``ADMIN_ENDPOINTS``."""
        if section not in ADMIN_ENDPOINTS:
            raise ValueError(f"Unknown admin section: {section}")
        response = self.request('GET', ADMIN_ENDPOINTS[section], params=params or None)
        return self._handle_response(response, f"Admin {section}")

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class AsyncChatClient:
    """aiohttp client used to run several chat conversations concurrently."""

    def __init__(self, config: ApiConfig, token: Optional[str] = None):
        self.config = config
        self.base_url = config.base_url.rstrip('/')
        self.token = token
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self._session = aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.config.timeout),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._session:
            await self._session.close()
            self._session = None

    async def send_chat(self, message: str, agent_id: str, conversation_id: Optional[str] = None,
                        source: str = "web") -> ChatReply:
        if self._session is None:
            raise RuntimeError("AsyncChatClient must be used as an async context manager")

        body = {'message': message, 'agentId': agent_id, 'source': source}
        if conversation_id:
            body['conversationId'] = conversation_id

        try:
            async with self._session.post(f"{self.base_url}/api/chat", json=body) as response:
                if response.status == 401:
                    raise AuthenticationError("Chat: authentication failed")
                try:
                    data = await response.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError):
                    data = None
                if response.status >= 400:
                    raise ApiRequestError(f"Chat: HTTP {response.status}", status_code=response.status,
                                          payload=data)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ApiRequestError(f"Chat request failed: {e}")

        return ChatReply.from_payload(data or {}, conversation_id)
