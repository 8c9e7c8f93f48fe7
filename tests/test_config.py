import datetime
import json
import pathlib

import pytest

from feedarchive import config as config_mod
from feedarchive.errors import ConfigError, TemplateError


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


def _write(path: pathlib.Path, payload) -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = payload if isinstance(payload, str) else json.dumps(payload)
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults(tmp_path: pathlib.Path) -> None:
    config = config_mod.load_config(environ={}, cwd=tmp_path)

    assert config.output_dir == tmp_path
    assert config.template_path is None
    assert config.timeout == 60
    assert config.user_agent == "feedToHtml/1.0.0 (RSS to HTML converter)"
    assert config.date_locale == "en_US"
    assert config.date_format == "MMMM d, y, hh:mm a"
    assert config.timezone is None
    assert config.verbose is False
    assert config.source is None


def test_default_config_file_is_found(tmp_path: pathlib.Path) -> None:
    _write(
        tmp_path / "feedtohtml.config.json",
        {
            "outputDir": "site",
            "timeout": 30,
            "userAgent": "Bot/2",
            "dateFormat": {"locale": "de_DE", "format": "long"},
            "timezone": "UTC",
        },
    )

    config = config_mod.load_config(environ={}, cwd=tmp_path)

    assert config.output_dir == tmp_path / "site"
    assert config.timeout == 30
    assert config.user_agent == "Bot/2"
    assert config.date_locale == "de_DE"
    assert config.date_format == "long"
    assert config.timezone == datetime.timezone.utc
    assert config.source == tmp_path / "feedtohtml.config.json"


def test_second_default_location(tmp_path: pathlib.Path) -> None:
    _write(tmp_path / "config" / "feedtohtml.json", {"verbose": True})
    assert config_mod.load_config(environ={}, cwd=tmp_path).verbose is True


def test_broken_default_file_is_skipped(tmp_path: pathlib.Path, capsys: pytest.CaptureFixture) -> None:
    _write(tmp_path / "feedtohtml.config.json", "{broken")
    _write(tmp_path / "config" / "feedtohtml.json", {"timeout": 12})

    config = config_mod.load_config(environ={}, cwd=tmp_path)

    assert config.timeout == 12
    assert "Warning" in capsys.readouterr().err


def test_explicit_file_must_exist(tmp_path: pathlib.Path) -> None:
    with pytest.raises(ConfigError):
        config_mod.load_config(tmp_path / "nope.json", environ={}, cwd=tmp_path)


def test_explicit_file_must_parse(tmp_path: pathlib.Path) -> None:
    path = _write(tmp_path / "custom.json", "[1, 2")
    with pytest.raises(ConfigError):
        config_mod.load_config(path, environ={}, cwd=tmp_path)


def test_layer_precedence(tmp_path: pathlib.Path) -> None:
    path = _write(tmp_path / "custom.json", {"timeout": 20, "outputDir": "from-file", "userAgent": "File/1"})
    environ = {"FEEDTOHTML_TIMEOUT": "25", "FEEDTOHTML_OUTPUT_DIR": "from-env", "FEEDTOHTML_VERBOSE": "true"}

    config = config_mod.load_config(path, {"output_dir": "from-cli", "timeout": None}, environ=environ, cwd=tmp_path)

    assert config.timeout == 25
    assert config.output_dir == tmp_path / "from-cli"
    assert config.user_agent == "File/1"
    assert config.verbose is True


@pytest.mark.parametrize("timeout", [0, -5, 601, "soon", True])
def test_invalid_timeout(tmp_path: pathlib.Path, timeout) -> None:
    with pytest.raises(ConfigError):
        config_mod.load_config(overrides={"timeout": timeout}, environ={}, cwd=tmp_path)


def test_timeout_upper_bound_is_inclusive(tmp_path: pathlib.Path) -> None:
    assert config_mod.load_config(overrides={"timeout": 600}, environ={}, cwd=tmp_path).timeout == 600


def test_unknown_locale(tmp_path: pathlib.Path) -> None:
    with pytest.raises(ConfigError):
        config_mod.load_config(overrides={"date_locale": "zz_NOPE"}, environ={}, cwd=tmp_path)


def test_unknown_timezone(tmp_path: pathlib.Path) -> None:
    with pytest.raises(ConfigError):
        config_mod.load_config(overrides={"timezone": "Mars/Olympus_Mons"}, environ={}, cwd=tmp_path)


def test_missing_template_file(tmp_path: pathlib.Path) -> None:
    with pytest.raises(ConfigError):
        config_mod.load_config(overrides={"template_path": "missing.html"}, environ={}, cwd=tmp_path)


def test_load_template(tmp_path: pathlib.Path) -> None:
    _write(tmp_path / "page.html", "<h1>{{FEED_TITLE}}</h1><main>{{ITEMS}}</main>")
    config = config_mod.load_config(overrides={"template_path": "page.html"}, environ={}, cwd=tmp_path)

    template = config_mod.load_template(config)

    assert template.source == str(tmp_path / "page.html")
    assert "{{FEED_TITLE}}" in template.content


def test_load_invalid_template(tmp_path: pathlib.Path) -> None:
    _write(tmp_path / "page.html", "<main>{{ITEMS}}</main>")
    config = config_mod.load_config(overrides={"template_path": "page.html"}, environ={}, cwd=tmp_path)

    with pytest.raises(TemplateError):
        config_mod.load_template(config)


def test_default_template_when_unset(tmp_path: pathlib.Path) -> None:
    config = config_mod.load_config(environ={}, cwd=tmp_path)
    assert config_mod.load_template(config).source == "<default>"


def test_summary_and_sample_config(tmp_path: pathlib.Path) -> None:
    path = config_mod.write_sample_config(tmp_path / "conf" / "feedtohtml.json")
    config = config_mod.load_config(path, environ={}, cwd=tmp_path)

    assert config.output_dir == tmp_path / "archive"
    assert config.timezone == datetime.timezone.utc
    summary = config_mod.config_summary(config)
    assert "timeout=60s" in summary
    assert "timezone=UTC" in summary


def test_allow_local_from_file_and_environment(tmp_path: pathlib.Path) -> None:
    assert config_mod.load_config(environ={}, cwd=tmp_path).allow_local is False

    path = _write(tmp_path / "custom.json", {"allowLocal": True})
    assert config_mod.load_config(path, environ={}, cwd=tmp_path).allow_local is True

    environ = {"FEEDTOHTML_ALLOW_LOCAL": "yes"}
    assert config_mod.load_config(environ=environ, cwd=tmp_path).allow_local is True
