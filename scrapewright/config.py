"""
config.py
=========
Engine configuration for scrapewright.

Values come from keyword arguments or from ``SCRAPEWRIGHT_*`` environment
variables (the CLI loads a ``.env`` file first).
"""

import os
from dataclasses import dataclass, field
from typing import Literal

from scrapewright.models import RetryPolicy

StabilityState = Literal['load', 'domcontentloaded', 'networkidle']

ENV_PREFIX = 'SCRAPEWRIGHT_'


@dataclass
class EngineConfig:
    """Configuration consumed by the session manager, orchestrator and transports.

    Attributes:
        driver_endpoint: CDP endpoint of a running browser (e.g. http://localhost:9222). None launches Chromium.
        headless: Launch the local browser headless. Ignored with a driver endpoint.
        max_sessions: Ceiling on concurrently busy sessions
        acquire_timeout: Seconds to wait for a free session slot before PoolExhausted
        idle_ttl: Seconds an idle session may live before it is torn down
        reaper_interval: Seconds between background idle sweeps
        step_timeout: Default per-step timeout in seconds
        navigation_timeout: Timeout for the initial page load in seconds
        health_check_timeout: Timeout for the liveness ping before reusing a session
        request_timeout: Default wall-clock budget per request in seconds
        stability_state: Load state awaited after the steps run
        request_attempts: Navigate-and-extract rounds allowed when a required field is missing
        reset_navigation_budget: Give every re-navigation a fresh navigation retry budget
        connect_retry: Policy for opening driver sessions
        acquire_retry: Policy for acquiring a session from the pool
        navigation_retry: Policy for page loads
        auth_token: Required Authorization header value for the HTTP server. None disables auth.
        host: HTTP bind address
        port: HTTP port
        log_level: Logging level name

    """

    driver_endpoint: str | None = None
    headless: bool = True
    max_sessions: int = 4
    acquire_timeout: float = 10.0
    idle_ttl: float = 300.0
    reaper_interval: float = 30.0
    step_timeout: float = 20.0
    navigation_timeout: float = 30.0
    health_check_timeout: float = 2.0
    request_timeout: float = 120.0
    stability_state: StabilityState = 'networkidle'
    request_attempts: int = 3
    reset_navigation_budget: bool = True
    connect_retry: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=3, base_delay=0.5, max_delay=5.0)
    )
    acquire_retry: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=2, base_delay=0.2, max_delay=1.0)
    )
    navigation_retry: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=10.0)
    )
    auth_token: str | None = None
    host: str = '0.0.0.0'
    port: int = 8080
    log_level: str = 'INFO'

    def __post_init__(self) -> None:
        """Validate configuration after initialization.

        Raises:
            ValueError: If a bound is out of range.

        """
        if self.max_sessions < 1:
            raise ValueError('max_sessions must be >= 1')
        if self.request_attempts < 1:
            raise ValueError('request_attempts must be >= 1')
        for name in (
            'acquire_timeout',
            'step_timeout',
            'navigation_timeout',
            'health_check_timeout',
            'request_timeout',
            'reaper_interval',
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f'{name} must be > 0')
        if self.idle_ttl < 0:
            raise ValueError('idle_ttl must be >= 0')
        if self.stability_state not in ('load', 'domcontentloaded', 'networkidle'):
            raise ValueError(f'Unknown stability_state: {self.stability_state}')

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, **overrides) -> 'EngineConfig':
        """Build a config from environment variables.

        Args:
            prefix: Environment variable prefix
            **overrides: Values that win over the environment

        Returns:
            EngineConfig instance

        """

        def env(name: str) -> str | None:
            value = os.getenv(prefix + name)
            return value if value not in (None, '') else None

        def policy(name: str, default: RetryPolicy) -> RetryPolicy:
            return RetryPolicy(
                max_attempts=int(env(f'{name}_ATTEMPTS') or default.max_attempts),
                base_delay=float(env(f'{name}_BASE_DELAY') or default.base_delay),
                max_delay=float(env(f'{name}_MAX_DELAY') or default.max_delay),
                jitter=float(env(f'{name}_JITTER') or default.jitter),
            )

        defaults = cls()
        values = {
            'driver_endpoint': env('DRIVER_ENDPOINT'),
            'headless': _parse_bool(env('HEADLESS'), defaults.headless),
            'max_sessions': int(env('MAX_SESSIONS') or defaults.max_sessions),
            'acquire_timeout': float(env('ACQUIRE_TIMEOUT') or defaults.acquire_timeout),
            'idle_ttl': float(env('IDLE_TTL') or defaults.idle_ttl),
            'reaper_interval': float(env('REAPER_INTERVAL') or defaults.reaper_interval),
            'step_timeout': float(env('STEP_TIMEOUT') or defaults.step_timeout),
            'navigation_timeout': float(env('NAVIGATION_TIMEOUT') or defaults.navigation_timeout),
            'health_check_timeout': float(env('HEALTH_CHECK_TIMEOUT') or defaults.health_check_timeout),
            'request_timeout': float(env('REQUEST_TIMEOUT') or defaults.request_timeout),
            'stability_state': env('STABILITY_STATE') or defaults.stability_state,
            'request_attempts': int(env('REQUEST_ATTEMPTS') or defaults.request_attempts),
            'reset_navigation_budget': _parse_bool(env('RESET_NAVIGATION_BUDGET'), defaults.reset_navigation_budget),
            'connect_retry': policy('CONNECT_RETRY', defaults.connect_retry),
            'acquire_retry': policy('ACQUIRE_RETRY', defaults.acquire_retry),
            'navigation_retry': policy('NAVIGATION_RETRY', defaults.navigation_retry),
            'auth_token': env('AUTH_TOKEN'),
            'host': env('HOST') or defaults.host,
            'port': int(env('PORT') or defaults.port),
            'log_level': env('LOG_LEVEL') or defaults.log_level,
        }
        values.update(overrides)
        return cls(**values)


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')
