import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import dotenv_values

from .logging import get_logger
from .paths import default_db_path, expand_abs

log = get_logger("config")

BACKEND_OPENAI = "openai"
BACKEND_OPENROUTER = "openrouter"
BACKENDS = (BACKEND_OPENAI, BACKEND_OPENROUTER)

# Google's OpenAI-compatible endpoint for Gemini models.
DEFAULT_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_MODELS = {
    BACKEND_OPENAI: "gemini-2.5-flash",
    BACKEND_OPENROUTER: "google/gemini-2.5-flash",
}
DEFAULT_TIMEOUT_SECONDS = 60


@dataclass(frozen=True)
class ExtractionSettings:
    """Everything the extraction client needs to reach the language model."""

    backend: str
    model: str
    api_key: Optional[str]
    base_url: Optional[str] = None
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    This makes running the tool from subdirectories still find the
    repository-level `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Return key/value pairs from the nearest `.env`; does not mutate environment."""
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    try:
        values = dotenv_values(path)
    except OSError as e:
        log.warning(f"Failed reading .env: {e}")
        return {}
    env = {k: v.strip() for k, v in values.items() if k and v is not None}
    log.debug(f"Loaded {len(env)} key(s) from .env at {path}")
    return env


def _lookup(names, env: Dict[str, str]) -> Optional[str]:
    for name in names:
        v = os.environ.get(name)
        if v and v.strip():
            return v.strip()
    for name in names:
        v = env.get(name)
        if v:
            return v
    return None


def load_api_key(dotenv_dir: str, backend: str = BACKEND_OPENAI) -> Optional[str]:
    """Return the extraction API key from env or .env.

    FUNDRAISER_API_KEY wins, then API_KEY and GEMINI_API_KEY, then the
    backend's conventional variable (OPENAI_API_KEY / OPEN_ROUTER_API_KEY).
    """
    names = ["FUNDRAISER_API_KEY", "API_KEY", "GEMINI_API_KEY"]
    if backend == BACKEND_OPENROUTER:
        names.append("OPEN_ROUTER_API_KEY")
    else:
        names.append("OPENAI_API_KEY")
    key = _lookup(names, _read_dotenv(dotenv_dir))
    if not key:
        log.debug("No extraction API key found in env or .env")
    return key


def load_extraction_settings(dotenv_dir: str) -> ExtractionSettings:
    env = _read_dotenv(dotenv_dir)

    backend = (_lookup(["EXTRACTION_BACKEND"], env) or BACKEND_OPENAI).lower()
    if backend not in BACKENDS:
        log.warning("Unknown EXTRACTION_BACKEND=%r; defaulting to '%s'", backend, BACKEND_OPENAI)
        backend = BACKEND_OPENAI

    model = _lookup(["EXTRACTION_MODEL"], env) or DEFAULT_MODELS[backend]
    base_url = _lookup(["EXTRACTION_BASE_URL"], env)
    if base_url is None and backend == BACKEND_OPENAI:
        base_url = DEFAULT_OPENAI_BASE_URL

    raw_timeout = _lookup(["EXTRACTION_TIMEOUT"], env)
    timeout = DEFAULT_TIMEOUT_SECONDS
    if raw_timeout:
        try:
            timeout = int(raw_timeout)
        except ValueError:
            log.warning("EXTRACTION_TIMEOUT=%r is not an integer; using %s", raw_timeout, DEFAULT_TIMEOUT_SECONDS)
        else:
            if timeout <= 0:
                timeout = DEFAULT_TIMEOUT_SECONDS

    return ExtractionSettings(
        backend=backend,
        model=model,
        api_key=load_api_key(dotenv_dir, backend),
        base_url=base_url,
        timeout_seconds=timeout,
    )


def load_storage_path(dotenv_dir: str) -> str:
    """Return the SQLite file holding the order collection."""
    v = _lookup(["FUNDRAISER_DB_PATH"], _read_dotenv(dotenv_dir))
    if v:
        return expand_abs(v)
    return default_db_path(dotenv_dir)
