from __future__ import annotations

import logging
from pathlib import Path

import pytest

from nudl.adapters.sysfs import PROC_MODULES, SYSFS_USB_DEVICES
from nudl.config import ConfigurationError, LabelerConfig, parse_duration, split_list
from nudl.domain.types import HardwareIdentifier, KeyMode, ModuleMatch


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NODE_NAME", "worker-1")
    monkeypatch.delenv("KUBECONFIG", raising=False)

    config = LabelerConfig.from_options()

    assert config.node_name == "worker-1"
    assert config.kubeconfig is None
    assert config.label_prefix == "nudl.squat.ai"
    assert config.update_interval == 10
    assert config.listen_address == ":8080"
    assert config.log_level == logging.INFO
    assert config.scan.mode is KeyMode.HUMAN
    assert config.scan.module_match is ModuleMatch.EXACT
    assert config.sysfs_root == SYSFS_USB_DEVICES
    assert config.modules_file == PROC_MODULES
    assert config.usb_ids is None


def test_hostname_falls_back_to_system_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NODE_NAME", raising=False)
    monkeypatch.setattr("nudl.config.labeler.socket.gethostname", lambda: "box")

    assert LabelerConfig.from_options().node_name == "box"


def test_kubeconfig_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KUBECONFIG", "/etc/kube/config")

    assert LabelerConfig.from_options(node_name="n").kubeconfig == "/etc/kube/config"


def test_options_are_parsed() -> None:
    config = LabelerConfig.from_options(
        node_name="n",
        human_readable=False,
        update_time="1m30s",
        no_contain=["hub, Keyboard", "mouse"],
        include=["8086:0044", "046d_c077"],
        modules=["wireguard,nfs"],
        module_match="Substring",
        log_level="DEBUG",
        usb_ids="/tmp/usb.ids",
    )

    assert config.update_interval == 90
    assert config.scan.mode is KeyMode.RAW
    assert config.scan.exclude == ("hub", "Keyboard", "mouse")
    assert config.scan.include == (
        HardwareIdentifier(0x8086, 0x0044),
        HardwareIdentifier(0x046D, 0xC077),
    )
    assert config.scan.modules == ("wireguard", "nfs")
    assert config.scan.module_match is ModuleMatch.SUBSTRING
    assert config.log_level == logging.DEBUG
    assert config.usb_ids == Path("/tmp/usb.ids")


@pytest.mark.parametrize(
    ("options", "message"),
    [
        ({"node_name": " "}, "node name"),
        ({"label_prefix": "bad prefix"}, "may only contain"),
        ({"label_prefix": "p" * 54}, "no room"),
        ({"update_time": "0s"}, "positive"),
        ({"update_time": "soon"}, "Invalid duration"),
        ({"include": ["8086:0044"]}, "human readable"),
        ({"human_readable": False, "include": ["8086"]}, "Invalid hardware identifier"),
        ({"modules": ["m" * 60]}, "Module filter"),
        ({"modules": ["wireguard,foo-"]}, "Module filter .foo-."),
        ({"module_match": "fuzzy"}, "module match"),
        ({"listen_address": "localhost"}, "listen address"),
        ({"log_level": "verbose"}, "log level"),
    ],
)
def test_invalid_options(options: dict[str, object], message: str) -> None:
    options.setdefault("node_name", "n")

    with pytest.raises(ConfigurationError, match=message):
        LabelerConfig.from_options(**options)  # type: ignore[arg-type]


def test_longest_prefix_is_accepted() -> None:
    assert len(LabelerConfig(node_name="n", label_prefix="p" * 53).label_prefix) == 53


@pytest.mark.parametrize(
    ("value", "seconds"),
    [("10", 10), ("10s", 10), ("1m30s", 90), ("250ms", 0.25), ("1h", 3600), ("1.5s", 1.5)],
)
def test_parse_duration(value: str, seconds: float) -> None:
    assert parse_duration(value) == pytest.approx(seconds)


@pytest.mark.parametrize("value", ["", "s", "10x", "10s5", "1m 30s", "inf", "nan"])
def test_parse_duration_rejects(value: str) -> None:
    with pytest.raises(ConfigurationError):
        parse_duration(value)


def test_split_list() -> None:
    assert split_list(None) == ()
    assert split_list(["a,b", " ", "c , ,d"]) == ("a", "b", "c", "d")
