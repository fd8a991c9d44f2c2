from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from nudl import main as main_module
from nudl.config import ConfigurationError
from nudl.domain.errors import StartupError
from nudl.domain.scheduler import SHUTDOWN_EXIT_STATUS
from nudl.domain.types import KeyMode, ModuleMatch

if TYPE_CHECKING:
    from nudl.config import LabelerConfig


@pytest.fixture(autouse=True)
def _quiet_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main_module, "load_dotenv", lambda: False)
    monkeypatch.setattr(main_module, "configure_logging", lambda **_: None)
    monkeypatch.setenv("NODE_NAME", "worker-1")


def _capture(
    monkeypatch: pytest.MonkeyPatch, status: int = SHUTDOWN_EXIT_STATUS
) -> list[LabelerConfig]:
    captured: list[LabelerConfig] = []

    async def fake_run(config: LabelerConfig) -> int:
        captured.append(config)
        return status

    monkeypatch.setattr(main_module, "run_labeler", fake_run)
    return captured


def test_main_cli_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture(monkeypatch)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main([])

    assert excinfo.value.code == SHUTDOWN_EXIT_STATUS
    [config] = captured
    assert config.node_name == "worker-1"
    assert config.scan.mode is KeyMode.HUMAN
    assert config.update_interval == 10


def test_main_cli_with_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture(monkeypatch)

    with pytest.raises(SystemExit):
        main_module.main(
            [
                "--hostname",
                "edge-7",
                "--no-human-readable",
                "--label-prefix",
                "usb.example.com",
                "--update-time",
                "30s",
                "--no-contain",
                "hub,keyboard",
                "--no-contain",
                "mouse",
                "--include",
                "8086:0044",
                "--modules",
                "wireguard",
                "--module-match",
                "substring",
                "--listen-address",
                "127.0.0.1:9100",
                "--log-level",
                "debug",
            ]
        )

    [config] = captured
    assert config.node_name == "edge-7"
    assert config.label_prefix == "usb.example.com"
    assert config.update_interval == 30
    assert config.scan.mode is KeyMode.RAW
    assert config.scan.exclude == ("hub", "keyboard", "mouse")
    assert [str(identifier) for identifier in config.scan.include] == ["8086:0044"]
    assert config.scan.modules == ("wireguard",)
    assert config.scan.module_match is ModuleMatch.SUBSTRING
    assert config.listen_address == "127.0.0.1:9100"


def test_invalid_configuration_exits_with_2(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture(monkeypatch)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["--include", "8086:0044"])

    assert excinfo.value.code == main_module.CONFIGURATION_EXIT_STATUS
    assert captured == []


def test_configuration_error_at_startup_exits_with_2(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_run(_: LabelerConfig) -> int:
        raise ConfigurationError("not in cluster")

    monkeypatch.setattr(main_module, "run_labeler", fake_run)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main([])

    assert excinfo.value.code == main_module.CONFIGURATION_EXIT_STATUS


def test_startup_error_exits_with_1(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_run(_: LabelerConfig) -> int:
        raise StartupError("could not get node")

    monkeypatch.setattr(main_module, "run_labeler", fake_run)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main([])

    assert excinfo.value.code == main_module.STARTUP_EXIT_STATUS
