import json
from pathlib import Path

import pytest

from deltashell.config import DEFAULT_CONFIG_FILE, load_config, load_settings
from deltashell.errors import ConfigurationError


def _write(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_config_reads_phases_and_gates(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "delta.json",
        {
            "phases": {
                "LOCAL": {"color": "36", "ssh": "localhost"},
                "BUILD": {"color": "32", "ssh": "build.example"},
            },
            "logic": {"gates": {"BUILD": "LOCAL"}},
        },
    )

    config = load_config(path)

    assert set(config.phases) == {"LOCAL", "BUILD"}
    assert config.phases["LOCAL"].is_local
    assert not config.phases["BUILD"].is_local
    assert config.logic.gates == {"BUILD": "LOCAL"}
    assert config.targets() == {"LOCAL": "localhost", "BUILD": "build.example"}


def test_invalid_phase_entries_are_skipped(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "delta.json",
        {"phases": {"OK": {"color": "31", "ssh": "h"}, "NO_SSH": {"color": "31"}, "NUM": {"color": 31, "ssh": "h"}}},
    )
    assert list(load_config(path).phases) == ["OK"]


def test_logic_is_optional(tmp_path: Path) -> None:
    path = _write(tmp_path / "delta.json", {"phases": {}})
    assert load_config(path).logic.gates == {}


@pytest.mark.parametrize("content", ["{not json", json.dumps({"logic": {}}), json.dumps([1, 2])])
def test_malformed_config_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "delta.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_missing_config_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="missing config file"):
        load_config(tmp_path / "absent.json")


def test_settings_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path)
    assert settings.sentinel == "__DONE__"
    assert settings.ssh_command == ["ssh", "-T"]
    assert settings.timeout_policy == "abandon"
    assert settings.command_timeout is None
    assert settings.resolve_config_path(tmp_path) == tmp_path / DEFAULT_CONFIG_FILE


def test_settings_from_environment_and_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text("DELTASHELL_COMMAND_TIMEOUT=2.5\n", encoding="utf-8")
    monkeypatch.setenv("DELTASHELL_TIMEOUT_POLICY", "terminate")
    monkeypatch.setenv("DELTASHELL_SSH_COMMAND", '["ssh", "-T", "-o", "BatchMode=yes"]')
    monkeypatch.setenv("DELTASHELL_CONFIG_FILE", "/etc/deltarc.json")

    settings = load_settings(tmp_path)

    assert settings.command_timeout == 2.5
    assert settings.timeout_policy == "terminate"
    assert settings.ssh_command == ["ssh", "-T", "-o", "BatchMode=yes"]
    assert settings.resolve_config_path(tmp_path) == Path("/etc/deltarc.json")


def test_invalid_settings_raise_configuration_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DELTASHELL_TIMEOUT_POLICY", "retry")
    with pytest.raises(ConfigurationError, match="invalid settings"):
        load_settings(tmp_path)
