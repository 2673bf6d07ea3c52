"""
Environment configuration shared by the VPN Lambda functions
"""
import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError

DEFAULT_PARAMETER_NAMESPACE = '/vpn'
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY_SECONDS = 1.0


@dataclass(frozen=True)
class Settings:
    parameter_namespace: str = DEFAULT_PARAMETER_NAMESPACE
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY_SECONDS
    region: Optional[str] = None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{raw}'")
    if value < 1:
        raise ConfigError(f"{name} must be at least 1, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got '{raw}'")
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {value}")
    return value


def load_settings() -> Settings:
    """
    Read settings from the Lambda environment

    Returns:
        Settings populated from environment variables, falling back to defaults

    Raises:
        ConfigError: if a numeric variable cannot be parsed
    """
    namespace = os.environ.get('VPN_PARAMETER_NAMESPACE') or DEFAULT_PARAMETER_NAMESPACE
    # SSM hierarchies must be absolute and must not end with a separator
    namespace = '/' + namespace.strip('/')

    return Settings(
        parameter_namespace=namespace,
        max_attempts=_env_int('RETRY_MAX_ATTEMPTS', DEFAULT_MAX_ATTEMPTS),
        base_delay=_env_float('RETRY_BASE_DELAY_SECONDS', DEFAULT_BASE_DELAY_SECONDS),
        region=os.environ.get('AWS_REGION') or None,
    )
