"""
Configuration management for the Leadify E2E checks.

Settings come from an optional JSON file, then a ``.env`` file, then the
process environment (highest precedence). Credentials are optional here;
a suite that needs a missing credential reports SKIP instead of failing.
"""

import os
import json
import logging
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field, asdict
from pathlib import Path

from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class ApiConfig:
    """Backend and frontend endpoints."""
    base_url: str = "http://localhost:3001"
    frontend_url: str = "http://localhost:3000"

    # Request Configuration
    timeout: int = 30
    max_retries: int = 3
    retry_backoff_factor: float = 1.0
    rate_limit_delay: float = 0.0


@dataclass
class SupabaseConfig:
    """Supabase project used for direct table verification."""
    url: Optional[str] = None
    anon_key: Optional[str] = None
    service_role_key: Optional[str] = None

    @property
    def key(self) -> Optional[str]:
        return self.service_role_key or self.anon_key

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.key)


@dataclass
class OpenAIConfig:
    """LLM provider settings for the benchmark checks."""
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    chat_models: List[str] = field(default_factory=lambda: ['gpt-4o-mini', 'gpt-5-mini', 'gpt-5-nano'])
    embedding_models: List[str] = field(default_factory=lambda: ['text-embedding-3-small'])
    max_tokens: int = 50
    timeout: int = 60


@dataclass
class CredentialsConfig:
    """Test accounts and signing secrets."""
    test_email: Optional[str] = None
    test_password: Optional[str] = None
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    admin_user_id: Optional[str] = None
    jwt_secret: Optional[str] = None
    organization_id: Optional[str] = None

    @property
    def has_test_user(self) -> bool:
        return bool(self.test_email and self.test_password)

    @property
    def has_admin(self) -> bool:
        return bool(self.admin_email and self.admin_password)


@dataclass
class WaitConfig:
    """Condition-based wait defaults."""
    timeout: float = 30.0
    interval: float = 0.5
    max_interval: float = 5.0


@dataclass
class BrowserConfig:
    """Playwright launch settings."""
    headless: bool = True
    slow_mo: int = 0
    viewport_width: int = 1280
    viewport_height: int = 720
    navigation_timeout: int = 30000
    artifacts_dir: str = "artifacts"


@dataclass
class SuiteConfig:
    """Main configuration for every check suite."""
    api: ApiConfig = field(default_factory=ApiConfig)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    wait: WaitConfig = field(default_factory=WaitConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)

    # System-wide settings
    environment: str = "development"
    pass_threshold: float = 0.8
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    reports_dir: Path = field(default_factory=lambda: Path("reports"))


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _number(name: str, value: Any, cast=float):
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def _env_number(name: str, default, cast=float):
    value = os.getenv(name)
    if value is None:
        return default
    return _number(name, value.strip(), cast)


class ConfigManager:
    """Configuration manager for handling environment variables and settings."""

    SECTIONS = ('api', 'supabase', 'openai', 'credentials', 'wait', 'browser')

    def __init__(self, config_file: Optional[Path] = None, env_file: Optional[Path] = None,
                 use_dotenv: bool = True):
        self.config_file = Path(config_file) if config_file else Path("e2e.config.json")
        self.env_file = env_file
        self.use_dotenv = use_dotenv
        self.config = SuiteConfig()
        self._load_config()

    def _load_config(self):
        """Load configuration from file, .env and environment."""
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    config_data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigurationError(f"Failed to load config file {self.config_file}: {e}")
            self._update_config_from_dict(config_data)
            logger.info(f"Loaded configuration from {self.config_file}")

        if self.use_dotenv:
            load_dotenv(self.env_file, override=False)

        self._load_from_environment()
        self._validate_config()

    def _update_config_from_dict(self, config_data: Dict[str, Any]):
        """Update configuration from a nested dictionary."""
        for section in self.SECTIONS:
            values = config_data.get(section)
            if not isinstance(values, dict):
                continue
            target = getattr(self.config, section)
            for key, value in values.items():
                if hasattr(target, key):
                    setattr(target, key, value)
                else:
                    logger.warning(f"Ignoring unknown config key {section}.{key}")

        system = config_data.get('system', {})
        self.config.environment = system.get('environment', self.config.environment)
        self.config.pass_threshold = _number(
            'system.pass_threshold', system.get('pass_threshold', self.config.pass_threshold))
        self.config.log_level = system.get('log_level', self.config.log_level)
        if system.get('log_file'):
            self.config.log_file = Path(system['log_file'])
        if system.get('reports_dir'):
            self.config.reports_dir = Path(system['reports_dir'])

    def _load_from_environment(self):
        """Load configuration from environment variables."""
        api = self.config.api
        api.base_url = os.getenv('API_BASE_URL', os.getenv('NEXT_PUBLIC_API_URL', api.base_url))
        api.frontend_url = os.getenv('FRONTEND_URL', os.getenv('BASE_URL', api.frontend_url))
        api.timeout = _env_number('API_TIMEOUT', api.timeout, int)
        api.max_retries = _env_number('API_MAX_RETRIES', api.max_retries, int)

        # Supabase
        sb = self.config.supabase
        sb.url = os.getenv('SUPABASE_URL', os.getenv('NEXT_PUBLIC_SUPABASE_URL', sb.url))
        sb.anon_key = os.getenv('SUPABASE_ANON_KEY', os.getenv('NEXT_PUBLIC_SUPABASE_ANON_KEY', sb.anon_key))
        sb.service_role_key = os.getenv('SUPABASE_SERVICE_ROLE_KEY', os.getenv('SUPABASE_SERVICE_KEY', sb.service_role_key))

        # LLM provider
        self.config.openai.api_key = os.getenv('OPENAI_API_KEY', self.config.openai.api_key)
        self.config.openai.base_url = os.getenv('OPENAI_BASE_URL', self.config.openai.base_url)

        # Credentials
        creds = self.config.credentials
        creds.test_email = os.getenv('TEST_USER_EMAIL', creds.test_email)
        creds.test_password = os.getenv('TEST_USER_PASSWORD', creds.test_password)
        creds.admin_email = os.getenv('ADMIN_EMAIL', creds.admin_email)
        creds.admin_password = os.getenv('ADMIN_PASSWORD', creds.admin_password)
        creds.admin_user_id = os.getenv('ADMIN_USER_ID', creds.admin_user_id)
        creds.jwt_secret = os.getenv('JWT_SECRET', creds.jwt_secret)
        creds.organization_id = os.getenv('TEST_ORG_ID', creds.organization_id)

        # Waiting and browser
        self.config.wait.timeout = _env_number('E2E_WAIT_TIMEOUT', self.config.wait.timeout)
        self.config.browser.headless = _env_bool('E2E_HEADLESS', self.config.browser.headless)
        self.config.browser.slow_mo = _env_number('E2E_SLOW_MO', self.config.browser.slow_mo, int)

        # System
        self.config.environment = os.getenv('E2E_ENV', self.config.environment)
        self.config.pass_threshold = _env_number('E2E_PASS_THRESHOLD', self.config.pass_threshold)
        self.config.log_level = os.getenv('LOG_LEVEL', self.config.log_level)
        if os.getenv('E2E_LOG_FILE'):
            self.config.log_file = Path(os.environ['E2E_LOG_FILE'])

    def _validate_config(self):
        """Validate configuration settings."""
        errors = []

        for name, url in (('API base URL', self.config.api.base_url),
                          ('frontend URL', self.config.api.frontend_url)):
            if not str(url).startswith(('http://', 'https://')):
                errors.append(f"{name} must start with http:// or https://")

        if self.config.supabase.url and not self.config.supabase.url.startswith(('http://', 'https://')):
            errors.append("SUPABASE_URL must start with http:// or https://")

        if self.config.api.timeout <= 0:
            errors.append("API timeout must be positive")

        if self.config.api.max_retries < 0:
            errors.append("API max_retries must be non-negative")

        if self.config.wait.timeout <= 0 or self.config.wait.interval <= 0:
            errors.append("Wait timeout and interval must be positive")

        if self.config.wait.max_interval < self.config.wait.interval:
            errors.append("Wait max_interval must not be smaller than interval")

        if not (0.0 <= self.config.pass_threshold <= 1.0):
            errors.append("Pass threshold must be between 0 and 1")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

        logger.debug("Configuration validation passed")

    def get_suite_config(self) -> SuiteConfig:
        """Get the loaded configuration."""
        return self.config

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """Serialize the configuration, hiding secrets by default."""
        data = asdict(self.config)
        data['log_file'] = str(self.config.log_file) if self.config.log_file else None
        data['reports_dir'] = str(self.config.reports_dir)
        if redact:
            secret_keys = {'anon_key', 'service_role_key', 'api_key', 'test_password',
                           'admin_password', 'jwt_secret'}
            for section in data.values():
                if isinstance(section, dict):
                    for key in secret_keys & section.keys():
                        if section[key]:
                            section[key] = '***'
        return data


def get_config() -> SuiteConfig:
    """Get global configuration instance."""
    if not hasattr(get_config, '_instance'):
        get_config._instance = ConfigManager()
    return get_config._instance.get_suite_config()


def reset_config():
    """Drop the cached configuration so the next call reloads it."""
    if hasattr(get_config, '_instance'):
        del get_config._instance
