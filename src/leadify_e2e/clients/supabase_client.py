"""
Direct Supabase access used to verify what the backend wrote.

Checks read ``ai_token_usage``, ``conversations``, ``agents``,
``organization_members`` and ``dev_members`` through the service-role key,
bypassing the REST API under test.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from postgrest.exceptions import APIError
from supabase import Client, create_client

from ..config import SupabaseConfig
from ..exceptions import AuthenticationError, ConfigurationError, SupabaseQueryError

logger = logging.getLogger(__name__)

# PostgreSQL undefined_table and PostgREST schema-cache miss
MISSING_TABLE_CODES = ('42P01', 'PGRST205')


def _isoformat(value: Any) -> str:
    return value.isoformat() if isinstance(value, datetime) else str(value)


class SupabaseVerifier:
    """Thin query layer over supabase-py for assertions."""

    def __init__(self, config: SupabaseConfig, client: Optional[Client] = None):
        self.config = config
        if client is None:
            if not config.is_configured:
                raise ConfigurationError("SUPABASE_URL and a Supabase key are required")
            client = create_client(config.url, config.key)
        self.client = client

    def _execute(self, query, description: str):
        try:
            return query.execute()
        except APIError as e:
            logger.error(f"Supabase query failed ({description}): {e.message}")
            raise SupabaseQueryError(f"{description}: {e.message}")

    def table_exists(self, table: str) -> bool:
        """Probe a table with a one-row select."""
        try:
            self.client.table(table).select('*').limit(1).execute()
        except APIError as e:
            message = e.message or ''
            if e.code in MISSING_TABLE_CODES or 'does not exist' in message:
                logger.warning(f"Table {table} does not exist")
                return False
            raise SupabaseQueryError(f"Probe of {table} failed: {message}")
        return True

    def fetch_rows(self, table: str, limit: int = 100, order_by: str = 'created_at',
                   descending: bool = True, since: Optional[Any] = None,
                   filters: Optional[Dict[str, Any]] = None, columns: str = '*') -> List[Dict[str, Any]]:
        """Fetch rows ordered by ``order_by``, optionally created at or after ``since``."""
        query = self.client.table(table).select(columns)
        for key, value in (filters or {}).items():
            query = query.eq(key, value)
        if since is not None:
            query = query.gte('created_at', _isoformat(since))
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit:
            query = query.limit(limit)
        response = self._execute(query, f"fetch {table}")
        return response.data or []

    def count_rows(self, table: str, since: Optional[Any] = None,
                   filters: Optional[Dict[str, Any]] = None) -> int:
        query = self.client.table(table).select('id', count='exact')
        for key, value in (filters or {}).items():
            query = query.eq(key, value)
        if since is not None:
            query = query.gte('created_at', _isoformat(since))
        response = self._execute(query.limit(1), f"count {table}")
        return response.count or 0

    def insert_row(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        response = self._execute(self.client.table(table).insert(row), f"insert into {table}")
        return response.data[0] if response.data else {}

    def get_row(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        response = self._execute(self.client.table(table).select('*').eq('id', row_id).limit(1),
                                 f"get {table}/{row_id}")
        return response.data[0] if response.data else None

    def delete_row(self, table: str, row_id: str) -> bool:
        self._execute(self.client.table(table).delete().eq('id', row_id), f"delete {table}/{row_id}")
        return True

    def list_agents(self, organization_id: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        """Agents joined with their organization name."""
        query = self.client.table('agents').select('id, name, organization_id, organizations!inner(name)')
        if organization_id:
            query = query.eq('organization_id', organization_id)
        response = self._execute(query.limit(limit), "list agents")
        return response.data or []

    def list_organization_members(self, organization_id: Optional[str] = None,
                                  roles: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        query = self.client.table('organization_members').select('user_id, organization_id, role')
        if organization_id:
            query = query.eq('organization_id', organization_id)
        if roles:
            query = query.in_('role', list(roles))
        response = self._execute(query, "list organization members")
        return response.data or []

    def list_dev_members(self) -> List[Dict[str, Any]]:
        response = self._execute(self.client.table('dev_members').select('*'), "list dev members")
        return response.data or []

    def sign_in(self, email: str, password: str) -> str:
        """Password sign-in through Supabase Auth; returns the access token."""
        try:
            response = self.client.auth.sign_in_with_password({'email': email, 'password': password})
        except Exception as e:
            raise AuthenticationError(f"Supabase sign-in failed for {email}: {e}")
        session = getattr(response, 'session', None)
        if not session or not session.access_token:
            raise AuthenticationError(f"Supabase sign-in for {email} returned no session")
        return session.access_token
