"""
Process settings loaded from environment variables.

Read once at startup (see `peduncle/main.py`) and never mutated afterwards.
A `.env` file in the working directory is honoured, but real environment
variables win.

Pool variables use the nested `PG__*` naming:
- PG__HOST, PG__PORT, PG__USER, PG__PASSWORD, PG__DBNAME
- PG__POOL__MAX_SIZE, PG__POOL__MIN_SIZE
- PG__POOL__TIMEOUTS__WAIT__SECS (unset = wait indefinitely)
- DATABASE_URL overrides the individual connection fields when set.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from dotenv import load_dotenv

DEFAULT_SERVER_ADDR = "127.0.0.1:8080"
DEFAULT_PG_HOST = "localhost"
DEFAULT_PG_PORT = 5432
DEFAULT_PG_DBNAME = "postgres"
DEFAULT_POOL_MAX_SIZE = 16
DEFAULT_POOL_MIN_SIZE = 1
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class ConfigError(RuntimeError):
    pass


def _env_str(environ: Mapping[str, str], name: str, default: str = "") -> str:
    return (environ.get(name) or "").strip() or default


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}.") from exc


def _env_float(environ: Mapping[str, str], name: str) -> float | None:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}.") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}.")
    return value


def _sanitize_database_url(url: str) -> str:
    # asyncpg rejects libpq's sslmode in the DSN query string.
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def split_server_addr(addr: str) -> tuple[str, int]:
    """
    Split a "host:port" bind address. IPv6 hosts may be bracketed.
    """
    host, sep, port = (addr or "").strip().rpartition(":")
    if not sep or not port.isdigit():
        raise ConfigError(f"SERVER_ADDR must look like host:port, got {addr!r}.")
    port_num = int(port)
    if not 0 < port_num < 65536:
        raise ConfigError(f"SERVER_ADDR port out of range: {port_num}.")
    return host.strip("[]") or "0.0.0.0", port_num


@dataclass(frozen=True)
class PgSettings:
    host: str = DEFAULT_PG_HOST
    port: int = DEFAULT_PG_PORT
    user: str = ""
    password: str = ""
    dbname: str = DEFAULT_PG_DBNAME
    max_size: int = DEFAULT_POOL_MAX_SIZE
    min_size: int = DEFAULT_POOL_MIN_SIZE
    acquire_timeout: float | None = None
    url: str = ""

    def dsn(self) -> str:
        if self.url:
            return _sanitize_database_url(self.url)

        netloc = ""
        if self.user:
            netloc = quote(self.user, safe="")
            if self.password:
                netloc += ":" + quote(self.password, safe="")
            netloc += "@"
        netloc += f"{self.host}:{self.port}"
        return urlunsplit(("postgresql", netloc, "/" + quote(self.dbname, safe=""), "", ""))


@dataclass(frozen=True)
class Settings:
    server_addr: str = DEFAULT_SERVER_ADDR
    pg: PgSettings = field(default_factory=PgSettings)
    log_level: str = "INFO"

    @property
    def bind(self) -> tuple[str, int]:
        return split_server_addr(self.server_addr)


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """
    Build `Settings` from the environment.

    With no explicit mapping, `.env` is loaded into `os.environ` first.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    max_size = _env_int(environ, "PG__POOL__MAX_SIZE", DEFAULT_POOL_MAX_SIZE)
    min_size = _env_int(environ, "PG__POOL__MIN_SIZE", DEFAULT_POOL_MIN_SIZE)
    if max_size < 1:
        raise ConfigError("PG__POOL__MAX_SIZE must be at least 1.")
    if min_size < 0:
        raise ConfigError("PG__POOL__MIN_SIZE must not be negative.")
    # asyncpg requires min_size <= max_size.
    min_size = min(min_size, max_size)

    pg = PgSettings(
        host=_env_str(environ, "PG__HOST", DEFAULT_PG_HOST),
        port=_env_int(environ, "PG__PORT", DEFAULT_PG_PORT),
        user=_env_str(environ, "PG__USER"),
        password=(environ.get("PG__PASSWORD") or ""),
        dbname=_env_str(environ, "PG__DBNAME", DEFAULT_PG_DBNAME),
        max_size=max_size,
        min_size=min_size,
        acquire_timeout=_env_float(environ, "PG__POOL__TIMEOUTS__WAIT__SECS"),
        url=_env_str(environ, "DATABASE_URL"),
    )

    settings = Settings(
        server_addr=_env_str(environ, "SERVER_ADDR", DEFAULT_SERVER_ADDR),
        pg=pg,
        log_level=_env_str(environ, "LOG_LEVEL", "INFO").upper(),
    )
    if settings.log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}.")
    # Fail at startup rather than at bind time.
    split_server_addr(settings.server_addr)
    return settings
