"""Configuration for archive runs.

Values are layered, later sources winning: built-in defaults, a JSON config
file, ``FEEDTOHTML_*`` environment variables and finally command-line
overrides.  This is the only module that looks at the environment or the
working directory; everything downstream receives an :class:`ArchiveConfig`.
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
import json
import os
import pathlib
import sys
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from babel import Locale, UnknownLocaleError

from .errors import ConfigError
from .templating import DEFAULT_DATE_FORMAT, DEFAULT_LOCALE, PageTemplate

__all__ = [
    "ArchiveConfig",
    "DEFAULT_CONFIG_PATHS",
    "DEFAULT_TIMEOUT",
    "DEFAULT_USER_AGENT",
    "MAX_TIMEOUT",
    "load_config",
    "load_template",
    "config_summary",
    "write_sample_config",
]

DEFAULT_TIMEOUT = 60.0
MAX_TIMEOUT = 600.0
DEFAULT_USER_AGENT = "feedToHtml/1.0.0 (RSS to HTML converter)"
DEFAULT_CONFIG_PATHS = (
    "feedtohtml.config.json",
    "config/feedtohtml.json",
    "~/.feedtohtml/config.json",
)

_ENV_KEYS = {
    "FEEDTOHTML_TIMEOUT": "timeout",
    "FEEDTOHTML_OUTPUT_DIR": "output_dir",
    "FEEDTOHTML_TEMPLATE": "template_path",
    "FEEDTOHTML_USER_AGENT": "user_agent",
}

# File keys keep the camelCase spelling existing config files use.
_FILE_KEYS = {
    "outputDir": "output_dir",
    "output_dir": "output_dir",
    "template": "template_path",
    "templatePath": "template_path",
    "template_path": "template_path",
    "timeout": "timeout",
    "userAgent": "user_agent",
    "user_agent": "user_agent",
    "verbose": "verbose",
    "timezone": "timezone",
    "allowLocal": "allow_local",
    "allow_local": "allow_local",
}


@dataclasses.dataclass(frozen=True, slots=True)
class ArchiveConfig:
    output_dir: pathlib.Path
    template_path: pathlib.Path | None = None
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    date_locale: str = DEFAULT_LOCALE
    date_format: str = DEFAULT_DATE_FORMAT
    timezone: _dt.tzinfo | None = None
    verbose: bool = False
    allow_local: bool = False
    source: pathlib.Path | None = None


def _warn(message: str) -> None:
    print(f"[feedarchive] Warning: {message}", file=sys.stderr)


def _expand(raw: str, cwd: pathlib.Path) -> pathlib.Path:
    path = pathlib.Path(raw).expanduser()
    return path if path.is_absolute() else cwd / path


def _read_json_file(path: pathlib.Path, *, required: bool) -> dict | None:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        if required:
            raise ConfigError(f"Configuration file not found: {path}") from None
        return None
    except OSError as exc:
        if required:
            raise ConfigError(f"Failed to read configuration file {path}: {exc}") from exc
        _warn(f"failed to read {path}: {exc}")
        return None

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        if required:
            raise ConfigError(f"Failed to parse configuration file {path}: {exc}") from exc
        _warn(f"invalid JSON in {path}: {exc}")
        return None

    if not isinstance(payload, dict):
        if required:
            raise ConfigError(f"Configuration root must be an object: {path}")
        _warn(f"configuration root must be an object: {path}")
        return None
    return payload


def _file_values(payload: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, value in payload.items():
        if key in _FILE_KEYS and value is not None:
            values[_FILE_KEYS[key]] = value

    date_format = payload.get("dateFormat")
    if isinstance(date_format, Mapping):
        if date_format.get("locale"):
            values["date_locale"] = date_format["locale"]
        if date_format.get("format"):
            values["date_format"] = date_format["format"]
    elif isinstance(date_format, str) and date_format:
        values["date_format"] = date_format
    return values


def _env_values(environ: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name, key in _ENV_KEYS.items():
        raw = environ.get(name)
        if raw is None or not raw.strip():
            continue
        raw = raw.strip()
        if key == "timeout":
            try:
                values[key] = float(raw)
            except ValueError:
                _warn(f"invalid {name}={raw!r}; ignoring")
            continue
        values[key] = raw

    if environ.get("FEEDTOHTML_VERBOSE", "").strip().lower() in {"1", "true", "yes"}:
        values["verbose"] = True
    if environ.get("FEEDTOHTML_ALLOW_LOCAL", "").strip().lower() in {"1", "true", "yes"}:
        values["allow_local"] = True
    return values


def _coerce_timeout(value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"timeout must be a number of seconds, got {value!r}")
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"timeout must be a number of seconds, got {value!r}") from None
    if timeout <= 0:
        raise ConfigError("timeout must be a positive number")
    if timeout > MAX_TIMEOUT:
        raise ConfigError(f"timeout cannot exceed {int(MAX_TIMEOUT)} seconds")
    return timeout


def _coerce_timezone(value: Any) -> _dt.tzinfo | None:
    if value is None or isinstance(value, _dt.tzinfo):
        return value
    name = str(value).strip()
    if not name or name.lower() == "local":
        return None
    if name.upper() in {"UTC", "Z"}:
        return _dt.timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"Unknown timezone: {name}") from None


def _coerce_locale(value: Any) -> str:
    name = str(value or "").strip() or DEFAULT_LOCALE
    try:
        Locale.parse(name)
    except (UnknownLocaleError, ValueError):
        raise ConfigError(f"Unknown locale: {name}") from None
    return name


def load_config(
    config_path: pathlib.Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    cwd: pathlib.Path | str | None = None,
) -> ArchiveConfig:
    """Build an :class:`ArchiveConfig` from every configuration layer.

    An explicit ``config_path`` must exist and parse.  The default locations
    are optional and a broken file there only produces a warning.
    """

    environ = os.environ if environ is None else environ
    base = pathlib.Path(cwd) if cwd is not None else pathlib.Path.cwd()

    values: dict[str, Any] = {
        "output_dir": base,
        "template_path": None,
        "timeout": DEFAULT_TIMEOUT,
        "user_agent": DEFAULT_USER_AGENT,
        "date_locale": DEFAULT_LOCALE,
        "date_format": DEFAULT_DATE_FORMAT,
        "timezone": None,
        "verbose": False,
        "allow_local": False,
    }

    source: pathlib.Path | None = None
    if config_path is not None:
        source = _expand(str(config_path), base)
        payload = _read_json_file(source, required=True)
    else:
        payload = None
        for candidate in DEFAULT_CONFIG_PATHS:
            path = _expand(candidate, base)
            payload = _read_json_file(path, required=False)
            if payload is not None:
                source = path
                break
    if payload:
        values.update(_file_values(payload))

    values.update(_env_values(environ))
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    template = values["template_path"]
    template_path = _expand(str(template), base) if template else None
    if template_path is not None and not template_path.is_file():
        raise ConfigError(f"Template file not found: {template_path}")

    return ArchiveConfig(
        output_dir=_expand(str(values["output_dir"]), base),
        template_path=template_path,
        timeout=_coerce_timeout(values["timeout"]),
        user_agent=str(values["user_agent"]).strip() or DEFAULT_USER_AGENT,
        date_locale=_coerce_locale(values["date_locale"]),
        date_format=str(values["date_format"] or DEFAULT_DATE_FORMAT),
        timezone=_coerce_timezone(values["timezone"]),
        verbose=bool(values["verbose"]),
        allow_local=bool(values["allow_local"]),
        source=source,
    )


def load_template(config: ArchiveConfig) -> PageTemplate:
    if config.template_path is None:
        return PageTemplate.default()
    try:
        content = config.template_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read template {config.template_path}: {exc}") from exc
    return PageTemplate(content, source=str(config.template_path))


def config_summary(config: ArchiveConfig) -> str:
    tz_name = getattr(config.timezone, "key", None) or (str(config.timezone) if config.timezone else "local")
    template = config.template_path or "<default>"
    return (
        f"output={config.output_dir} template={template} timeout={config.timeout:g}s "
        f"locale={config.date_locale} timezone={tz_name}"
    )


SAMPLE_CONFIG = {
    "outputDir": "./archive",
    "template": None,
    "timeout": DEFAULT_TIMEOUT,
    "userAgent": DEFAULT_USER_AGENT,
    "dateFormat": {"locale": DEFAULT_LOCALE, "format": DEFAULT_DATE_FORMAT},
    "timezone": "UTC",
    "verbose": False,
}


def write_sample_config(path: pathlib.Path | str) -> pathlib.Path:
    target = pathlib.Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(SAMPLE_CONFIG, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to save configuration to {target}: {exc}") from exc
    return target

