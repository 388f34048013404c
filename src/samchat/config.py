"""Application configuration loader.

Loads settings from ~/.samchat/config.json and applies environment
overrides. Every section is optional; anything missing or invalid falls
back to its default.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .llm import CompletionConfig
from .memory import MAX_FACTS, MemoryConfig
from .personas import DEFAULT_PERSONA_ID
from .proactive import CHECK_INTERVAL_SECONDS, SchedulerConfig
from .session import SessionConfig

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".samchat"
CONFIG_FILENAME = "config.json"


@dataclass
class AppConfig:
    """Configuration for the whole application.

    Attributes:
        home: Data root; every default path lives under it.
        user_id: Whose memory the CLI reads and writes.
        default_persona: Persona new sessions start with.
        personas_dir: Directory of custom PERSONA.md files.
        completion: Provider settings.
        memory: Memory store settings.
        sessions: Session persistence settings.
        proactive: Proactive scheduler settings.
        telegram_token: Bot token for proactive notifications.
        telegram_chat_id: Chat that receives proactive notifications.
    """

    home: Path | None = None
    user_id: str = "local"
    default_persona: str = DEFAULT_PERSONA_ID
    personas_dir: Path | None = None
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)
    proactive: SchedulerConfig = field(default_factory=SchedulerConfig)
    telegram_token: str | None = None
    telegram_chat_id: str | None = None

    def __post_init__(self) -> None:
        """Derive default paths from the data root."""
        if self.home is None:
            self.home = DEFAULT_HOME

        if self.personas_dir is None:
            self.personas_dir = self.home / "personas"
        if self.memory.directory is None:
            self.memory.directory = self.home / "memory"
        if self.sessions.sessions_dir is None:
            self.sessions.sessions_dir = self.home / "sessions"
        if self.proactive.state_path is None:
            self.proactive.state_path = self.home / "proactive.json"

    @property
    def logs_dir(self) -> Path:
        assert self.home is not None
        return self.home / "logs"

    @property
    def config_path(self) -> Path:
        assert self.home is not None
        return self.home / CONFIG_FILENAME


def default_home(environ: Mapping[str, str] | None = None) -> Path:
    """Data root, honoring SAMCHAT_HOME."""
    environ = os.environ if environ is None else environ
    value = environ.get("SAMCHAT_HOME")
    return Path(value).expanduser() if value else DEFAULT_HOME


def load_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load AppConfig from a JSON file plus environment variables.

    The config file should have this structure (every key optional):
    ```json
    {
      "user_id": "alice",
      "completion": {"model": "...", "fallback_models": ["..."], "temperature": 0.8},
      "memory": {"dir": "~/.samchat/memory", "max_facts": 20},
      "sessions": {"dir": "~/.samchat/sessions"},
      "personas": {"dir": "~/.samchat/personas", "default": "corporate"},
      "proactive": {"state_path": "~/.samchat/proactive.json", "check_interval": 60}
    }
    ```

    Args:
        config_path: Path to config file. Defaults to ``<home>/config.json``.
        environ: Environment to read overrides from. Uses os.environ if None.

    Returns:
        AppConfig instance with loaded values.
    """
    environ = os.environ if environ is None else environ
    home = default_home(environ)
    path = config_path or home / CONFIG_FILENAME

    data: Any = {}
    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        except OSError as e:
            logger.warning("Cannot read %s: %s. Using defaults.", path, e)

    if not isinstance(data, dict):
        if data:
            logger.warning("Config in %s is not an object. Using defaults.", path)
        data = {}

    return apply_env(_parse_config(data, home), environ)


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    return value if isinstance(value, dict) else {}


def _path(value: Any) -> Path | None:
    if isinstance(value, str) and value.strip():
        return Path(value).expanduser()
    return None


def _number(value: Any, default: float, minimum: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < minimum:
        return default
    return float(value)


def _parse_config(data: dict[str, Any], home: Path) -> AppConfig:
    """Parse config dictionary into AppConfig.

    Args:
        data: Parsed JSON data.
        home: Data root for default paths.

    Returns:
        AppConfig instance.
    """
    defaults = CompletionConfig()

    completion_data = _section(data, "completion")
    fallbacks = completion_data.get("fallback_models", defaults.fallback_models)
    if not isinstance(fallbacks, list) or not all(isinstance(m, str) for m in fallbacks):
        fallbacks = list(defaults.fallback_models)

    max_tokens = completion_data.get("max_tokens", defaults.max_tokens)
    if isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens < 1:
        max_tokens = defaults.max_tokens

    model = completion_data.get("model")
    base_url = completion_data.get("base_url")

    completion = CompletionConfig(
        base_url=base_url if isinstance(base_url, str) and base_url else defaults.base_url,
        model=model if isinstance(model, str) and model else defaults.model,
        fallback_models=list(fallbacks),
        temperature=_number(completion_data.get("temperature"), defaults.temperature),
        max_tokens=max_tokens,
        connect_timeout=_number(
            completion_data.get("connect_timeout"), defaults.connect_timeout, 0.1
        ),
        idle_timeout=_number(completion_data.get("idle_timeout"), defaults.idle_timeout, 0.1),
    )

    memory_data = _section(data, "memory")
    max_facts = memory_data.get("max_facts", MAX_FACTS)
    if isinstance(max_facts, bool) or not isinstance(max_facts, int) or max_facts < 1:
        max_facts = MAX_FACTS

    personas_data = _section(data, "personas")
    default_persona = personas_data.get("default", DEFAULT_PERSONA_ID)
    if not isinstance(default_persona, str) or not default_persona:
        default_persona = DEFAULT_PERSONA_ID

    proactive_data = _section(data, "proactive")
    persona = proactive_data.get("persona", SchedulerConfig.persona_id)
    if not isinstance(persona, str) or not persona:
        persona = SchedulerConfig.persona_id

    user_id = data.get("user_id", "local")
    if not isinstance(user_id, str) or not user_id.strip():
        user_id = "local"

    return AppConfig(
        home=home,
        user_id=user_id.strip(),
        default_persona=default_persona,
        personas_dir=_path(personas_data.get("dir")),
        completion=completion,
        memory=MemoryConfig(directory=_path(memory_data.get("dir")), max_facts=max_facts),
        sessions=SessionConfig(sessions_dir=_path(_section(data, "sessions").get("dir"))),
        proactive=SchedulerConfig(
            state_path=_path(proactive_data.get("state_path")),
            check_interval=_number(
                proactive_data.get("check_interval"), CHECK_INTERVAL_SECONDS, 1.0
            ),
            persona_id=persona,
        ),
    )


def apply_env(config: AppConfig, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Apply environment variable overrides to a config in place.

    Secrets (API key, bot token) are only ever read from the environment.
    """
    environ = os.environ if environ is None else environ

    if environ.get("OPENROUTER_API_KEY"):
        config.completion.api_key = environ["OPENROUTER_API_KEY"]
    if environ.get("SAMCHAT_MODEL"):
        config.completion.model = environ["SAMCHAT_MODEL"]
    if environ.get("SAMCHAT_BASE_URL"):
        config.completion.base_url = environ["SAMCHAT_BASE_URL"]
    if environ.get("SAMCHAT_USER"):
        config.user_id = environ["SAMCHAT_USER"]
    if environ.get("TELEGRAM_TOKEN"):
        config.telegram_token = environ["TELEGRAM_TOKEN"]
    if environ.get("TELEGRAM_CHAT_ID"):
        config.telegram_chat_id = environ["TELEGRAM_CHAT_ID"]

    return config


def save_config(config: AppConfig, config_path: Path | None = None) -> None:
    """Save AppConfig to a JSON file, writing only non-default values.

    Secrets are never written.

    Args:
        config: The config to save.
        config_path: Path to write to. Defaults to ``<home>/config.json``.
    """
    path = config_path or config.config_path
    path.parent.mkdir(parents=True, exist_ok=True)

    defaults = AppConfig(home=config.home)
    data: dict[str, Any] = {}

    if config.user_id != defaults.user_id:
        data["user_id"] = config.user_id

    completion: dict[str, Any] = {}
    for key in (
        "base_url",
        "model",
        "fallback_models",
        "temperature",
        "max_tokens",
        "connect_timeout",
        "idle_timeout",
    ):
        value = getattr(config.completion, key)
        if value != getattr(defaults.completion, key):
            completion[key] = value
    if completion:
        data["completion"] = completion

    memory: dict[str, Any] = {}
    if config.memory.directory != defaults.memory.directory:
        memory["dir"] = str(config.memory.directory)
    if config.memory.max_facts != defaults.memory.max_facts:
        memory["max_facts"] = config.memory.max_facts
    if memory:
        data["memory"] = memory

    if config.sessions.sessions_dir != defaults.sessions.sessions_dir:
        data["sessions"] = {"dir": str(config.sessions.sessions_dir)}

    personas: dict[str, Any] = {}
    if config.personas_dir != defaults.personas_dir:
        personas["dir"] = str(config.personas_dir)
    if config.default_persona != defaults.default_persona:
        personas["default"] = config.default_persona
    if personas:
        data["personas"] = personas

    proactive: dict[str, Any] = {}
    if config.proactive.state_path != defaults.proactive.state_path:
        proactive["state_path"] = str(config.proactive.state_path)
    if config.proactive.check_interval != defaults.proactive.check_interval:
        proactive["check_interval"] = config.proactive.check_interval
    if config.proactive.persona_id != defaults.proactive.persona_id:
        proactive["persona"] = config.proactive.persona_id
    if proactive:
        data["proactive"] = proactive

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise
