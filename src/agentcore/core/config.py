"""Configuration loading (TOML, env vars) and API key resolution."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from agentcore.types.config import DEFAULT_EVENT_BUFFER_SIZE, DEFAULT_MAX_TURNS, QueueMode
from agentcore.types.models import ThinkingLevel

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

CONFIG_DIR = ".agentcore"

ENV_MAP = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}

# env var -> (settings field, parser)
_ENV_SETTINGS: dict[str, tuple[str, str]] = {
    "AGENTCORE_MAX_TURNS": ("max_turns", "int"),
    "AGENTCORE_MAX_RETRIES": ("max_retries", "int"),
    "AGENTCORE_MAX_TOOL_ERRORS": ("max_tool_errors", "int"),
    "AGENTCORE_THINKING_LEVEL": ("thinking_level", "str"),
    "AGENTCORE_STEERING_MODE": ("steering_mode", "str"),
    "AGENTCORE_FOLLOW_UP_MODE": ("follow_up_mode", "str"),
    "AGENTCORE_EVENT_BUFFER_SIZE": ("event_buffer_size", "int"),
    "AGENTCORE_EVENT_SEND_TIMEOUT": ("event_send_timeout", "float"),
}


@dataclass(frozen=True, slots=True)
class AgentSettings:
    """Agent defaults resolved from config files and the environment."""

    system_prompt: str = ""
    max_turns: int = DEFAULT_MAX_TURNS
    max_retries: int = 3
    max_tool_errors: int = 3
    thinking_level: ThinkingLevel = ThinkingLevel.OFF
    thinking_budgets: dict[ThinkingLevel, int] = field(default_factory=dict)
    steering_mode: QueueMode = QueueMode.ALL
    follow_up_mode: QueueMode = QueueMode.ALL
    context_window: int = 0
    event_buffer_size: int = DEFAULT_EVENT_BUFFER_SIZE
    event_send_timeout: float | None = None


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}


def load_toml_config(cwd: str | None = None) -> dict[str, Any]:
    """Load the first config found: ``<cwd>/.agentcore/config.toml``, then
    ``~/.agentcore/config.toml``."""
    candidates = []
    if cwd:
        candidates.append(Path(cwd) / CONFIG_DIR / "config.toml")
    candidates.append(Path.cwd() / CONFIG_DIR / "config.toml")
    candidates.append(Path.home() / CONFIG_DIR / "config.toml")

    for path in candidates:
        if path.exists():
            return _read_toml(path)
    return {}


def load_env_config() -> dict[str, Any]:
    """Load settings overrides from ``AGENTCORE_*`` environment variables."""
    config: dict[str, Any] = {}
    for env_var, (name, kind) in _ENV_SETTINGS.items():
        raw = os.environ.get(env_var)
        if raw is None or raw == "":
            continue
        try:
            if kind == "int":
                config[name] = int(raw)
            elif kind == "float":
                config[name] = float(raw)
            else:
                config[name] = raw
        except ValueError as exc:
            raise ValueError(f"{env_var}: expected {kind}, got {raw!r}") from exc
    return config


def _coerce(values: dict[str, Any]) -> dict[str, Any]:
    known = {f.name for f in fields(AgentSettings)}
    out: dict[str, Any] = {}
    for key, value in values.items():
        if key not in known:
            logger.debug("Unknown agent setting %r ignored", key)
            continue
        if key == "thinking_level":
            value = ThinkingLevel(value)
        elif key in ("steering_mode", "follow_up_mode"):
            value = QueueMode(value)
        elif key == "thinking_budgets":
            value = {ThinkingLevel(k): int(v) for k, v in value.items()}
        out[key] = value
    return out


def load_settings(cwd: str | None = None) -> AgentSettings:
    """Resolve :class:`AgentSettings`: defaults < TOML ``[agent]`` < environment."""
    values: dict[str, Any] = {}
    values.update(load_toml_config(cwd).get("agent", {}))
    values.update(load_env_config())
    return AgentSettings(**_coerce(values))


def resolve_api_key(provider: str, explicit_key: str | None = None) -> str | None:
    """Resolve API key for a provider from explicit value, environment, or config file."""
    if explicit_key:
        return explicit_key

    env_var = ENV_MAP.get(provider, f"{provider.upper()}_API_KEY")
    if val := os.environ.get(env_var):
        return val

    # Fallback: [providers.<name>] in ~/.agentcore/config.toml
    config_path = Path.home() / CONFIG_DIR / "config.toml"
    if config_path.exists():
        data = _read_toml(config_path)
        key = data.get("providers", {}).get(provider, {}).get("api_key")
        if key:
            return key

    return None
