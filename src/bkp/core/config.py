import dataclasses
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

BUILD_INFO_RESOURCE = "build_info.yml"
COPY_CHUNK_SIZE = 1024 * 1024

DEFAULT_BUILD_INFO: Dict[str, str] = {
    "version": "dev",
    "commit": "none",
    "build_date": "unknown",
}

DEFAULT_CONFIG: Dict[str, Any] = {
    "log": {
        "level": "WARNING",
        "path": None,
        "max_bytes": 1_000_000,
        "backup_count": 3,
    },
    "copy": {
        "chunk_size": COPY_CHUNK_SIZE,
    },
}

# Environment variable -> (section, key)
ENV_OVERRIDES: Dict[str, tuple] = {
    "BKP_LOG_LEVEL": ("log", "level"),
    "BKP_LOG_FILE": ("log", "path"),
    "BKP_LOG_MAX_BYTES": ("log", "max_bytes"),
    "BKP_LOG_BACKUP_COUNT": ("log", "backup_count"),
    "BKP_COPY_CHUNK_SIZE": ("copy", "chunk_size"),
}

BUILD_INFO_ENV: Dict[str, str] = {
    "BKP_VERSION": "version",
    "BKP_COMMIT": "commit",
    "BKP_BUILD_DATE": "build_date",
}


class ConfigError(Exception):
    """Raised when configuration is invalid."""


@dataclasses.dataclass(frozen=True)
class BuildInfo:
    """Build metadata stamped at packaging time."""

    version: str = DEFAULT_BUILD_INFO["version"]
    commit: str = DEFAULT_BUILD_INFO["commit"]
    build_date: str = DEFAULT_BUILD_INFO["build_date"]

    def describe(self, program: str = "bkp") -> str:
        return (
            f"{program} version {self.version} "
            f"(commit {self.commit}, built {self.build_date})"
        )


@dataclasses.dataclass
class LogConfig:
    level: int
    path: Optional[Path]
    max_bytes: int
    backup_count: int


@dataclasses.dataclass
class BkpConfig:
    log: LogConfig
    build: BuildInfo
    chunk_size: int


def _merge_defaults(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in base.items()}
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


def collect_env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for name, (section, key) in ENV_OVERRIDES.items():
        value = env.get(name)
        if value is None or value.strip() == "":
            continue
        overrides.setdefault(section, {})[key] = value.strip()
    return overrides


def _parse_int(value: Any, name: str, *, minimum: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
    if parsed < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {parsed}")
    return parsed


def _parse_level(value: Any) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).upper())
    if not isinstance(level, int):
        raise ConfigError(f"log.level must be a logging level name, got {value!r}")
    return level


def parse_build_info(raw: Optional[str]) -> BuildInfo:
    """Parse the YAML build stamp; missing keys fall back to defaults."""
    data: Dict[str, Any] = {}
    if raw:
        try:
            loaded = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid {BUILD_INFO_RESOURCE}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"{BUILD_INFO_RESOURCE} must be a mapping")
        data = loaded
    values = dict(DEFAULT_BUILD_INFO)
    for key in DEFAULT_BUILD_INFO:
        value = data.get(key)
        if value is not None and str(value).strip():
            values[key] = str(value).strip()
    return BuildInfo(**values)


def load_build_info(env: Optional[Mapping[str, str]] = None) -> BuildInfo:
    env = os.environ if env is None else env
    try:
        raw = resources.files("bkp").joinpath(BUILD_INFO_RESOURCE).read_text(
            encoding="utf-8"
        )
    except OSError:
        raw = None
    info = parse_build_info(raw)
    overrides = {
        field: env[name].strip()
        for name, field in BUILD_INFO_ENV.items()
        if env.get(name, "").strip()
    }
    if overrides:
        info = dataclasses.replace(info, **overrides)
    return info


def load_config(
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> BkpConfig:
    """
    Build the runtime configuration from defaults, environment variables and
    explicit overrides (highest precedence).

    When ``env`` is omitted, a ``.env`` file in the working directory is
    loaded first and ``os.environ`` is used.
    """
    if env is None:
        load_dotenv(Path.cwd() / ".env", override=False)
        env = os.environ
    cfg = _merge_defaults(DEFAULT_CONFIG, collect_env_overrides(env))
    if overrides:
        cfg = _merge_defaults(cfg, overrides)

    log_cfg = cfg["log"]
    raw_path = log_cfg.get("path")
    return BkpConfig(
        log=LogConfig(
            level=_parse_level(log_cfg.get("level")),
            path=Path(raw_path).expanduser() if raw_path else None,
            max_bytes=_parse_int(log_cfg.get("max_bytes"), "log.max_bytes", minimum=0),
            backup_count=_parse_int(
                log_cfg.get("backup_count"), "log.backup_count", minimum=0
            ),
        ),
        build=load_build_info(env),
        chunk_size=_parse_int(cfg["copy"].get("chunk_size"), "copy.chunk_size", minimum=1),
    )
