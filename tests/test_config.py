"""Tests for application configuration."""

import json
from pathlib import Path

import pytest

from samchat.config import AppConfig, default_home, load_config, save_config
from samchat.llm import DEFAULT_MODEL, FALLBACK_MODELS


@pytest.fixture
def environ(tmp_path: Path) -> dict[str, str]:
    return {"SAMCHAT_HOME": str(tmp_path)}


def write_config(tmp_path: Path, data) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    return path


def test_defaults_without_file(tmp_path: Path, environ):
    """Test that a missing config file gives defaults under the home dir."""
    config = load_config(environ=environ)

    assert config.home == tmp_path
    assert config.user_id == "local"
    assert config.default_persona == "corporate"
    assert config.completion.model == DEFAULT_MODEL
    assert config.completion.fallback_models == list(FALLBACK_MODELS)
    assert config.completion.api_key is None
    assert config.memory.directory == tmp_path / "memory"
    assert config.memory.max_facts == 20
    assert config.sessions.sessions_dir == tmp_path / "sessions"
    assert config.personas_dir == tmp_path / "personas"
    assert config.proactive.state_path == tmp_path / "proactive.json"
    assert config.logs_dir == tmp_path / "logs"


def test_default_home(tmp_path: Path):
    assert default_home({"SAMCHAT_HOME": str(tmp_path)}) == tmp_path
    assert default_home({}).name == ".samchat"


def test_load_values(tmp_path: Path, environ):
    """Test that every section is read."""
    write_config(tmp_path, {
        "user_id": "alice",
        "completion": {"model": "my/model", "fallback_models": ["b"], "temperature": 0.2, "max_tokens": 200},
        "memory": {"dir": str(tmp_path / "mem"), "max_facts": 5},
        "sessions": {"dir": str(tmp_path / "chats")},
        "personas": {"dir": str(tmp_path / "ps"), "default": "sam"},
        "proactive": {"check_interval": 30, "persona": "corporate"},
    })

    config = load_config(environ=environ)

    assert config.user_id == "alice"
    assert config.completion.model == "my/model"
    assert config.completion.fallback_models == ["b"]
    assert config.completion.temperature == 0.2
    assert config.completion.max_tokens == 200
    assert config.memory.directory == tmp_path / "mem"
    assert config.memory.max_facts == 5
    assert config.sessions.sessions_dir == tmp_path / "chats"
    assert config.personas_dir == tmp_path / "ps"
    assert config.default_persona == "sam"
    assert config.proactive.check_interval == 30.0
    assert config.proactive.persona_id == "corporate"


def test_invalid_values_use_defaults(tmp_path: Path, environ):
    """Test that invalid values fall back individually."""
    write_config(tmp_path, {
        "user_id": 7,
        "completion": {"fallback_models": "nope", "temperature": "hot", "max_tokens": -1},
        "memory": {"max_facts": 0},
        "sessions": "elsewhere",
        "proactive": {"check_interval": 0},
    })

    config = load_config(environ=environ)

    assert config.user_id == "local"
    assert config.completion.fallback_models == list(FALLBACK_MODELS)
    assert config.completion.temperature == 0.8
    assert config.completion.max_tokens == 1000
    assert config.memory.max_facts == 20
    assert config.sessions.sessions_dir == tmp_path / "sessions"
    assert config.proactive.check_interval == 60.0


def test_invalid_json(tmp_path: Path, environ):
    """Test that a broken file gives defaults."""
    (tmp_path / "config.json").write_text("{broken")
    assert load_config(environ=environ).user_id == "local"


def test_not_an_object(tmp_path: Path, environ):
    write_config(tmp_path, ["a", "b"])
    assert load_config(environ=environ).user_id == "local"


def test_env_overrides(tmp_path: Path, environ):
    """Test that secrets and overrides come from the environment."""
    write_config(tmp_path, {"completion": {"model": "file/model"}})
    environ.update({
        "OPENROUTER_API_KEY": "sk-test",
        "SAMCHAT_MODEL": "env/model",
        "SAMCHAT_USER": "bob",
        "TELEGRAM_TOKEN": "123:abc",
        "TELEGRAM_CHAT_ID": "42",
    })

    config = load_config(environ=environ)

    assert config.completion.api_key == "sk-test"
    assert config.completion.model == "env/model"
    assert config.user_id == "bob"
    assert config.telegram_token == "123:abc"
    assert config.telegram_chat_id == "42"


def test_explicit_path(tmp_path: Path, environ):
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({"user_id": "carol"}))
    assert load_config(path, environ=environ).user_id == "carol"


def test_save_only_non_defaults(tmp_path: Path):
    """Test that save writes only what differs from defaults."""
    config = AppConfig(home=tmp_path)
    config.user_id = "alice"
    config.completion.temperature = 0.3
    config.completion.api_key = "sk-secret"
    config.default_persona = "sam"

    save_config(config)

    data = json.loads((tmp_path / "config.json").read_text())
    assert data == {
        "user_id": "alice",
        "completion": {"temperature": 0.3},
        "personas": {"default": "sam"},
    }


def test_save_then_load(tmp_path: Path, environ):
    config = AppConfig(home=tmp_path)
    config.memory.max_facts = 7
    config.proactive.check_interval = 15.0
    save_config(config)

    loaded = load_config(environ=environ)

    assert loaded.memory.max_facts == 7
    assert loaded.proactive.check_interval == 15.0
