"""Configuration: env, layered settings.json files, hook rules."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from hookwarden.hooks import (
    DEFAULT_TIMEOUT_MS,
    DENY_EXIT_CODE,
    ConfigError,
    ProtectedPathSpec,
    RuleSet,
    parse_hooks_config,
)
from hookwarden.hooks.protection import DEFAULT_PROTECTED_PATHS, parse_protected_paths

logger = logging.getLogger(__name__)

PROJECT_CONFIG_DIR = ".claude"


@dataclass
class Config:
    cwd: Path = field(default_factory=Path.cwd)
    global_dir: Path = field(default_factory=lambda: Path.home() / ".claude")
    project_dir: Path | None = None  # explicit override; None = CLAUDE_PROJECT_DIR or cwd
    verbose: bool = False
    hooks: RuleSet = field(default_factory=RuleSet)
    protected_paths: tuple[ProtectedPathSpec, ...] = DEFAULT_PROTECTED_PATHS
    deny_exit_code: int = DENY_EXIT_CODE
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    # document-level and per-rule load problems, reported once by the caller
    config_errors: list[ConfigError] = field(default_factory=list)

    @property
    def resolved_project_dir(self) -> Path:
        if self.project_dir is not None:
            return self.project_dir
        if env_dir := os.getenv("CLAUDE_PROJECT_DIR"):
            return Path(env_dir)
        return self.cwd

    @property
    def settings_files(self) -> list[Path]:
        """Settings files in increasing priority."""
        pdir = self.resolved_project_dir / PROJECT_CONFIG_DIR
        return [
            self.global_dir / "settings.json",
            pdir / "settings.json",
            pdir / "settings.local.json",
        ]


def _read_settings(config: Config, path: Path) -> dict | None:
    """Read one settings file; a broken file is recorded on ``config.config_errors``."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: top level must be an object")
    except (OSError, json.JSONDecodeError) as e:
        config.config_errors.append(ConfigError(f"cannot load {path}: {e}"))
        return None
    except ConfigError as e:
        config.config_errors.append(e)
        return None
    return data


def _valid_deny_code(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value < 256


def _apply_options(config: Config, data: dict, path: Path) -> None:
    """Apply the scalar settings of one file; later files override earlier ones."""
    if "defaultTimeoutMs" in data:
        value = data["defaultTimeoutMs"]
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            config.default_timeout_ms = value
        else:
            config.config_errors.append(
                ConfigError(f"{path}: defaultTimeoutMs must be a positive integer", field="defaultTimeoutMs")
            )
    if "denyExitCode" in data:
        value = data["denyExitCode"]
        if _valid_deny_code(value):
            config.deny_exit_code = value
        else:
            config.config_errors.append(
                ConfigError(f"{path}: denyExitCode must be 1-255", field="denyExitCode")
            )
    if "protectedPaths" in data:
        try:
            config.protected_paths = parse_protected_paths(data["protectedPaths"] or [])
        except (ConfigError, TypeError) as e:
            config.config_errors.append(
                e if isinstance(e, ConfigError) else ConfigError(f"{path}: {e}", field="protectedPaths")
            )


def _apply_hooks(config: Config, data: dict, path: Path) -> None:
    rules = parse_hooks_config(data, config.default_timeout_ms, source=str(path))
    config.hooks = config.hooks.merge(rules)
    config.config_errors.extend(rules.errors)


def _apply_settings(config: Config, path: Path) -> None:
    """Apply a single settings.json file to config.

    A broken file is recorded on ``config.config_errors`` and otherwise skipped;
    the session keeps whatever hooks the other files provided.
    """
    data = _read_settings(config, path)
    if data is not None:
        _apply_options(config, data, path)
        _apply_hooks(config, data, path)


def load_config(
    config_path: str | Path | None = None,
    project_dir: str | Path | None = None,
    verbose: bool = False,
) -> Config:
    """Load config with priority: CLI args > env > .env > settings files > defaults.

    Scalar options from every file are resolved before any hooks are parsed,
    so the final ``defaultTimeoutMs`` applies to rules from all layers.
    """
    load_dotenv()

    config = Config(verbose=verbose)
    if project_dir is not None:
        config.project_dir = Path(project_dir)

    paths = list(config.settings_files)
    if env_config := os.getenv("HOOKWARDEN_CONFIG"):
        paths.append(Path(env_config))
    documents = [(p, d) for p in paths if (d := _read_settings(config, p)) is not None]
    for path, data in documents:
        _apply_options(config, data, path)

    if env_deny := os.getenv("HOOKWARDEN_DENY_EXIT_CODE"):
        try:
            value = int(env_deny)
        except ValueError:
            value = None
        if _valid_deny_code(value):
            config.deny_exit_code = value
        else:
            config.config_errors.append(
                ConfigError(f"HOOKWARDEN_DENY_EXIT_CODE must be 1-255, got {env_deny!r}")
            )

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            config.config_errors.append(ConfigError(f"config file not found: {path}"))
        elif (data := _read_settings(config, path)) is not None:
            _apply_options(config, data, path)
            documents.append((path, data))

    for path, data in documents:
        _apply_hooks(config, data, path)

    for e in config.config_errors:
        logger.error("Invalid hook config: %s", e)
    return config
