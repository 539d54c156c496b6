"""Sidecar configuration resolved once from environment variables."""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


DEFAULT_LLAMA_SERVER_PATH = "/home/ubuntu/llama.cpp/build/bin/llama-server"
DEFAULT_MODEL_PATH = "/models/gpt-oss-20b-Q5_K_M.gguf"


def env_string(name: str, default: str) -> str:
    """Return the variable's value, or default when unset."""
    return os.getenv(name, default)


def env_int(name: str, default: int, minimum: int | None = None) -> int:
    """
    Parse an integer environment variable.

    Unset, unparseable or below-minimum values fall back to default.

    Args:
        name: Environment variable name
        default: Value used when the variable is missing or invalid
        minimum: Optional lower bound (inclusive)

    Returns:
        Parsed integer or default
    """
    raw = os.getenv(name)
    if raw is None:
        return default

    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer, using {default}")
        return default

    if minimum is not None and value < minimum:
        logger.warning(f"Ignoring {name}={raw!r}: must be >= {minimum}, using {default}")
        return default

    return value


LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def env_log_level(name: str, default: str = "INFO") -> str:
    """
    Parse a logging level name accepted by both logging and uvicorn.

    WARN is read as WARNING; anything else unknown falls back to default.
    """
    raw = os.getenv(name)
    if raw is None:
        return default

    level = raw.strip().upper()
    if level == "WARN":
        level = "WARNING"
    if level not in LOG_LEVELS:
        logger.warning(f"Ignoring {name}={raw!r}: not a log level, using {default}")
        return default
    return level


@dataclass(frozen=True)
class Settings:
    """Immutable process-wide options."""

    bind_host: str = "0.0.0.0"
    bind_port: int = 3000
    llama_server_path: str = DEFAULT_LLAMA_SERVER_PATH
    model_path: str = DEFAULT_MODEL_PATH
    llama_host: str = "127.0.0.1"
    llama_port: int = 8080
    ctx_size: int = 8192
    n_gpu_layers: int = 99  # Negative omits the -ngl flag
    ready_timeout: int = 60
    request_timeout: int = 300
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Read all sidecar settings from the environment."""
    return Settings(
        bind_host=env_string("BIND_HOST", "0.0.0.0"),
        bind_port=env_int("BIND_PORT", 3000, minimum=0),
        llama_server_path=env_string("LLAMA_SERVER_PATH", DEFAULT_LLAMA_SERVER_PATH),
        model_path=env_string("MODEL_PATH", DEFAULT_MODEL_PATH),
        llama_host=env_string("LLAMA_HOST", "127.0.0.1"),
        llama_port=env_int("LLAMA_PORT", 8080, minimum=0),
        ctx_size=env_int("CTX", 8192, minimum=0),
        n_gpu_layers=env_int("N_GPU_LAYERS", 99),
        ready_timeout=env_int("READY_TIMEOUT_SECONDS", 60, minimum=0),
        request_timeout=env_int("REQUEST_TIMEOUT_SECONDS", 300, minimum=1),
        log_level=env_log_level("LOG_LEVEL"),
    )
