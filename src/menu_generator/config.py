import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import dotenv_values

from .errors import ConfigurationError
from .logging import get_logger
from .paths import find_upwards

log = get_logger("config")

BACKENDS = ("openai", "openrouter")

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "openrouter": "google/gemini-flash-1.5",
}

API_KEY_NAMES = {
    "openai": ("OPENAI_API_KEY", "openai_api_key"),
    "openrouter": ("OPEN_ROUTER_API_KEY", "open_router_api_key"),
}

DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters sent with every extraction request."""

    temperature: float = 1.0
    top_p: float = 0.95
    top_k: int = 64
    max_output_tokens: int = 8192
    timeout_seconds: float = 90.0
    # Send the menu JSON schema so the provider constrains the output shape.
    structured_output: bool = True


@dataclass(frozen=True)
class Settings:
    backend: str
    api_key: str
    model_name: str
    base_url: Optional[str] = None
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES
    generation: GenerationConfig = field(default_factory=GenerationConfig)


def _read_dotenv(dotenv_dir: Optional[str]) -> Dict[str, str]:
    """Return key/value pairs from the nearest .env (does not mutate environment)."""
    path = find_upwards(dotenv_dir or os.getcwd(), ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir or '.')}")
        return {}
    values = {k: v for k, v in dotenv_values(path).items() if v is not None}
    log.debug(f"Loaded {len(values)} key(s) from .env at {path}")
    return values


def _lookup(env: Dict[str, str], *names: str) -> Optional[str]:
    for name in names:
        v = os.environ.get(name)
        if v and v.strip():
            return v.strip()
    for name in names:
        v = env.get(name)
        if v and v.strip():
            return v.strip()
    return None


def _float(env: Dict[str, str], name: str, default: float) -> float:
    raw = _lookup(env, name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning(f"{name}={raw!r} is not a number; using {default}")
        return default


def _int(env: Dict[str, str], name: str, default: int) -> int:
    raw = _lookup(env, name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"{name}={raw!r} is not an integer; using {default}")
        return default


def _bool(env: Dict[str, str], name: str, default: bool) -> bool:
    raw = _lookup(env, name)
    if raw is None:
        return default
    return raw.lower() not in {"0", "false", "no", "off"}


def load_generation_config(env: Dict[str, str]) -> GenerationConfig:
    base = GenerationConfig()
    return GenerationConfig(
        temperature=_float(env, "MENU_TEMPERATURE", base.temperature),
        top_p=_float(env, "MENU_TOP_P", base.top_p),
        top_k=_int(env, "MENU_TOP_K", base.top_k),
        max_output_tokens=_int(env, "MENU_MAX_OUTPUT_TOKENS", base.max_output_tokens),
        timeout_seconds=_float(env, "MENU_TIMEOUT_SECONDS", base.timeout_seconds),
        structured_output=_bool(env, "MENU_STRUCTURED_OUTPUT", base.structured_output),
    )


def load_settings(dotenv_dir: Optional[str] = None) -> Settings:
    """Resolve settings from the environment, then the nearest .env.

    Raises ConfigurationError when the credential for the selected backend is
    missing; callers treat this as a fatal startup condition.
    """
    env = _read_dotenv(dotenv_dir)

    backend = (_lookup(env, "MENU_BACKEND") or "openai").lower()
    if backend not in BACKENDS:
        raise ConfigurationError(f"MENU_BACKEND must be one of {', '.join(BACKENDS)}; got {backend!r}")

    api_key = _lookup(env, *API_KEY_NAMES[backend])
    if not api_key:
        raise ConfigurationError(f"{API_KEY_NAMES[backend][0]} missing in env/.env; cannot run extraction")
    log.info(f"Using {API_KEY_NAMES[backend][0]} for backend '{backend}'")

    settings = Settings(
        backend=backend,
        api_key=api_key,
        model_name=_lookup(env, "MENU_MODEL") or DEFAULT_MODELS[backend],
        base_url=_lookup(env, "OPENAI_BASE_URL") if backend == "openai" else None,
        max_image_bytes=_int(env, "MENU_MAX_IMAGE_BYTES", DEFAULT_MAX_IMAGE_BYTES),
        generation=load_generation_config(env),
    )
    log.debug(f"Effective model: {settings.model_name} generation={settings.generation}")
    return settings
