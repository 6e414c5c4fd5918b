"""Utilities for loading membercheck configuration profiles."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for older runtimes.
    import tomli as tomllib  # type: ignore[no-redef]

from apps.membercheck.utils.errors import MemberCheckConfigError

CONFIG_FILENAME = "membercheck.toml"
PROFILE_ENV = "MEMBERCHECK_PROFILE"
PROJECT_ROOT_ENV = "MEMBERCHECK_PROJECT_ROOT"


@dataclass(frozen=True)
class ProfileContext:
    """Container describing a resolved configuration profile."""

    name: str
    data: Mapping[str, Any]
    sources: tuple[Path, ...]


def load_profile(
    *,
    profile: str | None = None,
    workspace: Path | None = None,
    project_root: Path | None = None,
) -> ProfileContext:
    """Load and merge membercheck configuration before selecting *profile*.

    Configuration is read from up to three locations, lowest to highest
    precedence: user, project, then workspace.  Each may provide a TOML
    document with a ``profiles`` table of named settings, for example::

        default_profile = "web"

        [profiles.web]
        ec2_tag = "Role"
        ec2_value = "web"
        consul_service = "web"

    Later files override earlier ones via deep-merge semantics.  When *profile*
    is ``None`` the ``MEMBERCHECK_PROFILE`` environment variable is consulted,
    then the highest precedence ``default_profile``, then ``"default"``.
    """

    merged_config: Dict[str, Any] = {}
    sources: list[Path] = []

    for path in _iter_config_paths(workspace=workspace, project_root=project_root):
        try:
            document = _load_toml(path)
        except OSError as exc:  # pragma: no cover - filesystem errors are rare.
            raise MemberCheckConfigError(
                f"Unable to read configuration file '{path}': {exc}"
            ) from exc
        except tomllib.TOMLDecodeError as exc:
            raise MemberCheckConfigError(
                f"Configuration file '{path}' is not valid TOML: {exc}"
            ) from exc
        merged_config = _deep_merge(merged_config, document)
        sources.append(path)

    profiles = merged_config.get("profiles", {})
    if not isinstance(profiles, Mapping):
        raise MemberCheckConfigError(
            "The 'profiles' table must contain mappings of settings"
        )

    selected_profile = _determine_profile_name(merged_config, profile)

    profile_data: Mapping[str, Any]
    if selected_profile in profiles:
        raw_data = profiles[selected_profile]
        if not isinstance(raw_data, Mapping):
            raise MemberCheckConfigError(
                f"Profile '{selected_profile}' must be a mapping of configuration values"
            )
        profile_data = dict(raw_data)
    elif selected_profile == "default":
        profile_data = {}
    else:
        available = ", ".join(sorted(str(name) for name in profiles)) or "<none>"
        raise MemberCheckConfigError(
            f"Profile '{selected_profile}' was not found. Available profiles: {available}."
        )

    return ProfileContext(
        name=selected_profile,
        data=profile_data,
        sources=tuple(sources),
    )


def optional_str(value: Any, field: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    raise MemberCheckConfigError(f"Configuration value '{field}' must be a string.")


def optional_bool(value: Any, field: str) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    raise MemberCheckConfigError(f"Configuration value '{field}' must be a boolean.")


def optional_float(value: Any, field: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MemberCheckConfigError(f"Configuration value '{field}' must be a number.")
    return float(value)


def _iter_config_paths(
    *, workspace: Path | None, project_root: Path | None
) -> Iterable[Path]:
    """Yield configuration files in precedence order."""

    yielded: set[Path] = set()

    for path in _user_config_paths():
        if path.exists() and path not in yielded:
            yielded.add(path)
            yield path

    project_candidate = _normalise_project_root(project_root)
    path = project_candidate / CONFIG_FILENAME
    if path.exists() and path not in yielded:
        yielded.add(path)
        yield path

    if workspace is not None:
        workspace_path = workspace / CONFIG_FILENAME
        if workspace_path.exists() and workspace_path not in yielded:
            yielded.add(workspace_path)
            yield workspace_path


def _user_config_paths() -> tuple[Path, ...]:
    """Return user-level configuration search paths."""

    home = Path(os.path.expanduser("~"))
    xdg_config = os.environ.get("XDG_CONFIG_HOME")

    candidates = []
    if xdg_config:
        candidates.append(Path(xdg_config) / "membercheck" / CONFIG_FILENAME)

    candidates.append(home / ".config" / "membercheck" / CONFIG_FILENAME)
    candidates.append(home / ".membercheck" / CONFIG_FILENAME)
    candidates.append(home / CONFIG_FILENAME)

    return tuple(candidates)


def _normalise_project_root(project_root: Path | None) -> Path:
    if project_root is None:
        env_root = os.environ.get(PROJECT_ROOT_ENV)
        project_root = Path(env_root).expanduser() if env_root else Path.cwd()
    return project_root


def _load_toml(path: Path) -> Dict[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _deep_merge(base: Dict[str, Any], new: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {**base}
    for key, value in new.items():
        if (
            key in merged
            and isinstance(merged[key], Mapping)
            and isinstance(value, Mapping)
        ):
            merged[key] = _deep_merge(dict(merged[key]), value)
        else:
            merged[key] = value
    return merged


def _determine_profile_name(config: Mapping[str, Any], override: str | None) -> str:
    if override:
        return override

    env_profile = os.environ.get(PROFILE_ENV)
    if env_profile:
        return env_profile

    default_profile = config.get("default_profile")
    if isinstance(default_profile, str) and default_profile:
        return default_profile

    return "default"
