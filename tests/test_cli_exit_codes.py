"""Regression tests covering CLI exit code mapping."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from apps.membercheck import __main__ as cli_main
from apps.membercheck.utils.errors import ExitCode, MemberCheckConfigError
from tests.fakes import FailingSource, StaticSource, members

ARGS = ["check", "--ec2-tag", "Role", "--ec2-value", "web", "--consul-service", "web"]


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("MEMBERCHECK_PROJECT_ROOT", str(tmp_path / "project"))
    monkeypatch.delenv("MEMBERCHECK_PROFILE", raising=False)


def _install_sources(monkeypatch: pytest.MonkeyPatch, fleet: Any, cluster: Any) -> None:
    monkeypatch.setattr(
        "apps.membercheck.check.build_sources", lambda options: (fleet, cluster)
    )


@pytest.mark.parametrize(
    ("fleet", "cluster", "expected"),
    [
        (["10.0.0.1"], ["10.0.0.1"], ExitCode.OK),
        (["10.0.0.1"], ["10.0.0.1", "10.0.0.2"], ExitCode.WARNING),
        (["10.0.0.1", "10.0.0.2"], ["10.0.0.1"], ExitCode.CRITICAL),
    ],
)
def test_main_maps_verdicts_to_exit_codes(
    monkeypatch: pytest.MonkeyPatch,
    fleet: list[str],
    cluster: list[str],
    expected: ExitCode,
) -> None:
    _install_sources(
        monkeypatch,
        StaticSource("ec2", members(*fleet)),
        StaticSource("consul", members(*cluster)),
    )

    assert cli_main.main(ARGS) == expected


def test_main_maps_source_failures_to_unknown(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_sources(
        monkeypatch, FailingSource("ec2", "boom"), StaticSource("consul", [])
    )

    assert cli_main.main(ARGS) == ExitCode.UNKNOWN


def test_main_renders_unexpected_config_errors(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def _raise(**_: Any) -> None:
        raise MemberCheckConfigError("profile store unreadable")

    monkeypatch.setattr("apps.membercheck.check.MembershipCheckJob", _raise)
    _install_sources(monkeypatch, StaticSource("ec2", []), StaticSource("consul", []))

    exit_code = cli_main.main(ARGS)

    assert exit_code == ExitCode.UNKNOWN
    assert (
        "MEMBERSHIP UNKNOWN: Configuration error: profile store unreadable"
        in capsys.readouterr().out
    )


@pytest.mark.parametrize(
    ("argv", "detail"),
    [
        (ARGS + ["--timeout", "abc"], "'abc' is not a valid float"),
        (["check", "--bogus"], "No such option: --bogus"),
    ],
)
def test_main_reports_bad_flags_as_unknown(
    argv: list[str], detail: str, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = cli_main.main(argv)

    output = capsys.readouterr().out
    assert exit_code == ExitCode.UNKNOWN
    assert output.startswith("MEMBERSHIP UNKNOWN: Configuration error: ")
    assert detail in output
