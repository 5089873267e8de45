"""Configuration helpers: environment, ``.env`` files, YAML files and logging.

Usage example:
    from shopify_admin.config import ClientConfig
    config = ClientConfig.from_env(env_file=Path('.env'))
"""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .exceptions import ConfigurationError

DEFAULT_API_VERSION = '2021-10'
DEFAULT_TIMEOUT = 10
DEFAULT_RETRIES = 2

logger = logging.getLogger(__name__)


def env(name: str, required: bool = True) -> Optional[str]:
    val = os.getenv(name)
    if required and (val is None or val.strip() == ''):
        raise ConfigurationError(f"Missing required environment variable: {name}")
    return val


def _int_value(name: str, raw: Any, default: int) -> int:
    if raw is None or (isinstance(raw, str) and raw.strip() == ''):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def load_env_file(env_path: Path, prefix: str = 'SHOPIFY_') -> List[str]:
    """Copy ``prefix``-ed ``KEY=value`` pairs from a dotenv file into os.environ.

    Keys already set to a non-empty value are left alone. Returns the keys
    that were written, in file order.
    """
    if not env_path.exists():
        return []
    written: List[str] = []
    for lineno, raw in enumerate(env_path.read_text(encoding='utf-8').splitlines(), 1):
        line = raw.strip()
        if line.startswith('export '):
            line = line[len('export '):].lstrip()
        if not line or line.startswith('#'):
            continue
        key, sep, value = line.partition('=')
        key = key.strip()
        if not sep or not key:
            logger.debug('%s:%d: skipping line without KEY=value', env_path, lineno)
            continue
        if not key.startswith(prefix) or (os.environ.get(key) or '').strip():
            continue
        os.environ[key] = value.strip().strip('"').strip("'")
        written.append(key)
    if written:
        logger.debug('Loaded %s from %s', ', '.join(written), env_path)
    return written


def load_yaml_config(path: Path, section: Optional[str] = None) -> Dict[str, Any]:
    """Read a YAML config file; an absent file gives an empty dict."""
    if not path.exists():
        return {}
    with path.open('r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")
    if section is not None:
        data = data.get(section) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path}: section {section!r} must be a mapping")
    return data


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format='[%(levelname)s] %(message)s')


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings of one Admin API client. Frozen once built."""
    shop_domain: str
    access_token: str
    api_version: str = DEFAULT_API_VERSION
    timeout: int = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_RETRIES

    def __post_init__(self):
        if not self.shop_domain or not self.access_token:
            raise ConfigurationError('shop_domain and access_token are required')
        if self.max_retries < 1:
            raise ConfigurationError('max_retries must be at least 1')
        if self.timeout <= 0:
            raise ConfigurationError('timeout must be positive')

    @property
    def base_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'ClientConfig':
        return cls(
            shop_domain=str(data.get('shop_domain') or '').strip(),
            access_token=str(data.get('access_token') or '').strip(),
            api_version=str(data.get('api_version') or DEFAULT_API_VERSION),
            timeout=_int_value('timeout', data.get('timeout'), DEFAULT_TIMEOUT),
            max_retries=_int_value('max_retries', data.get('max_retries'), DEFAULT_RETRIES),
        )

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> 'ClientConfig':
        """Build from ``SHOPIFY_*`` variables, first filling gaps from ``env_file`` if given."""
        if env_file is not None:
            load_env_file(env_file)
        return cls(
            shop_domain=env('SHOPIFY_SHOP_DOMAIN').strip(),  # type: ignore[union-attr]
            access_token=env('SHOPIFY_ACCESS_TOKEN').strip(),  # type: ignore[union-attr]
            api_version=os.getenv('SHOPIFY_API_VERSION') or DEFAULT_API_VERSION,
            timeout=_int_value('SHOPIFY_TIMEOUT', os.getenv('SHOPIFY_TIMEOUT'), DEFAULT_TIMEOUT),
            max_retries=_int_value('SHOPIFY_MAX_RETRIES', os.getenv('SHOPIFY_MAX_RETRIES'), DEFAULT_RETRIES),
        )

    @classmethod
    def from_yaml(cls, path: Path, section: str = 'shopify') -> 'ClientConfig':
        return cls.from_mapping(load_yaml_config(path, section=section))

    def __repr__(self) -> str:
        return (f"ClientConfig(shop_domain={self.shop_domain!r}, access_token='***', "
                f"api_version={self.api_version!r}, timeout={self.timeout}, max_retries={self.max_retries})")
