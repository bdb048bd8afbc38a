"""Environment and path configuration.

Loads .env (or .env.example), then secrets/private.env if present.
Resolves relative paths (token store) from project root.

If DATA_DIR or BPCS_DATA_DIR is set, that path is used as project root, so .env and the
default access_token.csv stay in one place whatever directory bpcs is run from
(cron jobs, scripts calling `bpcs token`).
"""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

DEFAULT_OAUTH_HOST = "https://openapi.baidu.com/oauth/2.0/"
DEFAULT_TOKEN_STORE = "access_token.csv"
# Baidu shows the code on its own page instead of redirecting.
DEFAULT_REDIRECT_URI = "oob"
DEFAULT_SCOPE = "netdisk"


def _truthy(v: str | None) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "on"}


# Project root: pinned by DATA_DIR / BPCS_DATA_DIR, else the directory holding .env
_data_dir = os.environ.get("DATA_DIR") or os.environ.get("BPCS_DATA_DIR")
if _data_dir:
    PROJECT_ROOT = Path(_data_dir).resolve()
    _env_file = PROJECT_ROOT / ".env"
    if not _env_file.exists():
        _env_file = PROJECT_ROOT / ".env.example" if (PROJECT_ROOT / ".env.example").exists() else None
    _env_path = str(_env_file) if _env_file and _env_file.exists() else None
else:
    _env_path = find_dotenv(".env", usecwd=True)
    if not _env_path:
        _env_path = find_dotenv(".env.example", usecwd=True)
    PROJECT_ROOT = Path(_env_path).resolve().parent if _env_path else Path.cwd()

if _env_path:
    load_dotenv(_env_path)

# secrets/private.env overrides the base file
_private_env = PROJECT_ROOT / "secrets" / "private.env"
if _private_env.exists():
    load_dotenv(_private_env, override=True)


def resolve_path(p: str) -> str:
    """
    Resolve a filesystem path from an env string.
    - If absolute: return as-is
    - If relative: resolve relative to PROJECT_ROOT
    """
    path = Path(p)
    return str(path if path.is_absolute() else (PROJECT_ROOT / path).resolve())


def verbose_enabled() -> bool:
    return _truthy(os.environ.get("BPCS_VERBOSE"))


def env(name: str) -> str:
    v = os.environ.get(name)
    if not v:
        raise RuntimeError(f"Missing env var: {name}")
    return v


def oauth_host() -> str:
    host = (os.environ.get("BPCS_OAUTH_HOST") or "").strip() or DEFAULT_OAUTH_HOST
    return host.rstrip("/") + "/"


def token_store_path() -> str:
    raw = (os.environ.get("BPCS_TOKEN_STORE") or "").strip()
    return resolve_path(raw or DEFAULT_TOKEN_STORE)


def redirect_uri() -> str:
    return (os.environ.get("BPCS_REDIRECT_URI") or "").strip() or DEFAULT_REDIRECT_URI


def default_scope() -> str:
    return (os.environ.get("BPCS_SCOPE") or "").strip() or DEFAULT_SCOPE


def http_timeout() -> float:
    raw = (os.environ.get("BPCS_HTTP_TIMEOUT") or "").strip() or "30"
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid BPCS_HTTP_TIMEOUT: {raw!r}") from exc
