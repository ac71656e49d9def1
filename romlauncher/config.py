"""Runtime configuration for the ROM launcher.

Every value can be overridden through the environment; anything missing or
malformed falls back to DEFAULT_CONFIG.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Pattern, Union

logger = logging.getLogger(__name__)

# Portable layout: data lives next to the package
_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_DIR = os.path.dirname(_PACKAGE_DIR)

MAX_ROM_NAME_LENGTH = 255
MAX_BODY_DEPTH = 5

DEFAULT_CORS_ORIGINS: List[Pattern[str]] = [
    re.compile(r'^http://localhost(:\d+)?$'),
    re.compile(r'^http://127\.0\.0\.1(:\d+)?$'),
]

DEFAULT_CONFIG: Dict[str, Any] = {
    "host": "127.0.0.1",
    "port": 3000,
    "environment": "development",
    "roms_dir": os.path.join(PROJECT_DIR, "data", "roms"),
    "public_dir": os.path.join(PROJECT_DIR, "public"),
    "db_path": os.path.join(PROJECT_DIR, "data.sqlite"),
    "log_dir": os.path.join(PROJECT_DIR, "data", "logs"),
    "rate_limit_window_ms": 15 * 60 * 1000,
    "rate_limit_max": 100,
    "max_content_length": 10 * 1024 * 1024,
    "trust_proxy": False,
}

Origin = Union[str, Pattern[str]]


@dataclass
class AppConfig:
    """Resolved configuration handed to the app factory and entry point."""
    host: str = DEFAULT_CONFIG["host"]
    port: int = DEFAULT_CONFIG["port"]
    environment: str = DEFAULT_CONFIG["environment"]
    roms_dir: str = DEFAULT_CONFIG["roms_dir"]
    public_dir: str = DEFAULT_CONFIG["public_dir"]
    db_path: str = DEFAULT_CONFIG["db_path"]
    log_dir: str = DEFAULT_CONFIG["log_dir"]
    cors_origins: List[Origin] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    rate_limit_window_ms: int = DEFAULT_CONFIG["rate_limit_window_ms"]
    rate_limit_max: int = DEFAULT_CONFIG["rate_limit_max"]
    max_content_length: int = DEFAULT_CONFIG["max_content_length"]
    trust_proxy: bool = DEFAULT_CONFIG["trust_proxy"]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'host': self.host,
            'port': self.port,
            'environment': self.environment,
            'roms_dir': self.roms_dir,
            'public_dir': self.public_dir,
            'db_path': self.db_path,
            'log_dir': self.log_dir,
            'cors_origins': [o if isinstance(o, str) else o.pattern for o in self.cors_origins],
            'rate_limit_window_ms': self.rate_limit_window_ms,
            'rate_limit_max': self.rate_limit_max,
            'max_content_length': self.max_content_length,
            'trust_proxy': self.trust_proxy,
        }


def _int_env(environ: Mapping[str, str], key: str, default: int, minimum: int = 0) -> int:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip(), 10)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", key, raw, default)
        return default
    if value < minimum:
        logger.warning("Ignoring out-of-range %s=%r, using %s", key, raw, default)
        return default
    return value


def _bool_env(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _parse_origins(raw: Optional[str]) -> List[Origin]:
    if raw is None or not raw.strip():
        return list(DEFAULT_CORS_ORIGINS)
    return [part.strip() for part in raw.split(',') if part.strip()]


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Build an AppConfig from environment-style variables."""
    env = os.environ if environ is None else environ

    environment = (
        env.get('APP_ENV') or env.get('FLASK_ENV') or env.get('NODE_ENV')
        or DEFAULT_CONFIG['environment']
    ).strip()

    return AppConfig(
        host=env.get('HOST') or DEFAULT_CONFIG['host'],
        port=_int_env(env, 'PORT', DEFAULT_CONFIG['port'], minimum=1),
        environment=environment,
        roms_dir=env.get('ROMS_DIR') or DEFAULT_CONFIG['roms_dir'],
        public_dir=env.get('PUBLIC_DIR') or DEFAULT_CONFIG['public_dir'],
        db_path=env.get('DB_PATH') or DEFAULT_CONFIG['db_path'],
        log_dir=env.get('LOG_DIR') or DEFAULT_CONFIG['log_dir'],
        cors_origins=_parse_origins(env.get('CORS_ORIGIN')),
        rate_limit_window_ms=_int_env(
            env, 'RATE_LIMIT_WINDOW_MS', DEFAULT_CONFIG['rate_limit_window_ms'], minimum=1),
        rate_limit_max=_int_env(env, 'RATE_LIMIT_MAX', DEFAULT_CONFIG['rate_limit_max'], minimum=1),
        max_content_length=_int_env(
            env, 'MAX_CONTENT_LENGTH', DEFAULT_CONFIG['max_content_length'], minimum=1),
        trust_proxy=_bool_env(env, 'TRUST_PROXY', DEFAULT_CONFIG['trust_proxy']),
    )


def ensure_directories(config: AppConfig) -> None:
    """Create the ROM directory (and the database's parent) at startup."""
    if not os.path.isdir(config.roms_dir):
        os.makedirs(config.roms_dir, exist_ok=True)
        logger.info("Created ROMs directory: %s", config.roms_dir)
    db_parent = os.path.dirname(os.path.abspath(config.db_path))
    os.makedirs(db_parent, exist_ok=True)
