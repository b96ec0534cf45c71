"""Tests for the configuration module."""

from __future__ import annotations

import logging
import os
import tomllib
from typing import TYPE_CHECKING

import pytest

from prbuddy.config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG_TEMPLATE,
    CommentsConfig,
    Config,
    _collect_unknown_keys,
    clean_config,
    get_config,
    get_config_path,
    init_config,
    load_config,
    register_reload_callback,
    set_config,
    update_config,
)
from prbuddy.models import SortMode, SuggestionType

if TYPE_CHECKING:
    from pathlib import Path


def _write(root: Path, text: str) -> Path:
    path = root / CONFIG_FILENAME
    path.write_text(text, encoding="utf-8")
    return path


def _bump_mtime(path: Path) -> None:
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))


class TestConfig:
    def test_defaults(self):
        config = Config()
        assert config.comments.page_size == 20
        assert config.comments.default_sort == SortMode.PRIORITY
        assert config.comments.parse_review_bodies is True
        assert config.ai_review.include_nits is True
        assert config.ai_review.suggestion_types is None
        assert config.cache.ttl_seconds == 30

    def test_unknown_reviewer_is_enabled(self):
        assert Config().get_reviewer("future_bot").enabled is True

    def test_page_size_bounds(self):
        with pytest.raises(ValueError, match="page_size"):
            CommentsConfig(page_size=101)


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, tmp_path: Path):
        (tmp_path / ".git").mkdir()
        config, path = load_config(cwd=tmp_path)
        assert path is None
        assert config == Config()

    def test_load_valid_toml(self, tmp_path: Path):
        (tmp_path / ".git").mkdir()
        _write(
            tmp_path,
            """\
[comments]
page_size = 50
default_sort = "by_file"

[ai_review]
include_nits = false
suggestion_types = ["actionable", "nit"]

[reviewers.coderabbit]
enabled = false

[cache]
ttl_seconds = 0
""",
        )
        config, path = load_config(cwd=tmp_path)
        assert path == tmp_path / CONFIG_FILENAME
        assert config.comments.page_size == 50
        assert config.comments.default_sort == SortMode.BY_FILE
        assert config.ai_review.include_nits is False
        assert config.ai_review.suggestion_types == [SuggestionType.ACTIONABLE, SuggestionType.NIT]
        assert config.get_reviewer("coderabbit").enabled is False
        assert config.cache.ttl_seconds == 0

    def test_load_walks_up_to_git_root(self, tmp_path: Path):
        (tmp_path / ".git").mkdir()
        _write(tmp_path, "[comments]\npage_size = 5\n")
        subdir = tmp_path / "src" / "deep"
        subdir.mkdir(parents=True)
        config, _ = load_config(cwd=subdir)
        assert config.comments.page_size == 5

    def test_stops_at_git_root(self, tmp_path: Path):
        _write(tmp_path, "[comments]\npage_size = 5\n")
        project = tmp_path / "project"
        project.mkdir()
        (project / ".git").mkdir()
        config, path = load_config(cwd=project)
        assert path is None
        assert config.comments.page_size == 20

    def test_invalid_toml_raises(self, tmp_path: Path):
        (tmp_path / ".git").mkdir()
        _write(tmp_path, "{{invalid toml")
        with pytest.raises(ValueError, match="Invalid TOML"):
            load_config(cwd=tmp_path)

    def test_invalid_config_values_raises(self, tmp_path: Path):
        (tmp_path / ".git").mkdir()
        _write(tmp_path, '[comments]\ndefault_sort = "random"\n')
        with pytest.raises(ValueError, match="Invalid config"):
            load_config(cwd=tmp_path)

    def test_template_matches_defaults(self, tmp_path: Path):
        (tmp_path / ".git").mkdir()
        _write(tmp_path, DEFAULT_CONFIG_TEMPLATE)
        config, _ = load_config(cwd=tmp_path)
        assert config.comments == Config().comments
        assert config.ai_review == Config().ai_review
        assert config.cache == Config().cache
        assert config.get_reviewer("coderabbit").enabled is True


class TestCollectUnknownKeys:
    def test_top_level_unknown(self):
        assert _collect_unknown_keys({"comments": {}, "bogus_key": True}, Config) == ["bogus_key"]

    def test_nested_unknown(self):
        data = {"comments": {"page_size": 10, "max_pages": 3}}
        assert _collect_unknown_keys(data, Config) == ["comments.max_pages"]

    def test_unknown_reviewer_names_are_allowed(self):
        assert _collect_unknown_keys({"reviewers": {"future_bot": {"enabled": True}}}, Config) == []

    def test_unknown_key_inside_reviewer(self):
        data = {"reviewers": {"coderabbit": {"enabled": True, "auto_resolve": False}}}
        assert _collect_unknown_keys(data, Config) == ["reviewers.coderabbit.auto_resolve"]


class TestLoadConfigWarnings:
    def test_warns_on_unknown_keys(self, tmp_path: Path, caplog: pytest.LogCaptureFixture):
        (tmp_path / ".git").mkdir()
        _write(tmp_path, "[comments]\nmax_pages = 3\n")
        with caplog.at_level(logging.WARNING, logger="prbuddy.config"):
            load_config(cwd=tmp_path)
        assert any("max_pages" in r.message for r in caplog.records)
        assert any("--update" in r.message for r in caplog.records)


class TestHotReload:
    def test_defaults_without_file(self):
        set_config(Config())
        assert get_config() == Config()
        assert get_config_path() is None

    def test_reloads_on_change_and_fires_callbacks(self, tmp_path: Path):
        path = _write(tmp_path, "[comments]\npage_size = 5\n")
        config, _ = load_config(cwd=tmp_path)
        set_config(config, config_path=path)
        seen: list[Config] = []
        register_reload_callback(seen.append)

        path.write_text("[comments]\npage_size = 7\n", encoding="utf-8")
        _bump_mtime(path)

        assert get_config().comments.page_size == 7
        assert [c.comments.page_size for c in seen] == [7]

    def test_invalid_edit_keeps_last_good(self, tmp_path: Path):
        path = _write(tmp_path, "[comments]\npage_size = 5\n")
        config, _ = load_config(cwd=tmp_path)
        set_config(config, config_path=path)

        path.write_text("{{broken", encoding="utf-8")
        _bump_mtime(path)

        assert get_config().comments.page_size == 5

    def test_deleted_file_falls_back_to_defaults(self, tmp_path: Path):
        path = _write(tmp_path, "[comments]\npage_size = 5\n")
        config, _ = load_config(cwd=tmp_path)
        set_config(config, config_path=path)

        path.unlink()

        assert get_config() == Config()

    def test_failing_callback_does_not_break_reload(self, tmp_path: Path):
        path = _write(tmp_path, "[comments]\npage_size = 5\n")
        set_config(load_config(cwd=tmp_path)[0], config_path=path)

        def _boom(_config: Config) -> None:
            raise RuntimeError("callback failed")

        register_reload_callback(_boom)
        path.write_text("[comments]\npage_size = 9\n", encoding="utf-8")
        _bump_mtime(path)

        assert get_config().comments.page_size == 9


class TestInitConfig:
    def test_creates_template(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]):
        path = init_config(cwd=tmp_path)
        assert path.read_text(encoding="utf-8") == DEFAULT_CONFIG_TEMPLATE
        assert tomllib.loads(DEFAULT_CONFIG_TEMPLATE)["comments"]["page_size"] == 20
        assert "Created" in capsys.readouterr().out

    def test_refuses_to_overwrite(self, tmp_path: Path):
        _write(tmp_path, "")
        with pytest.raises(SystemExit):
            init_config(cwd=tmp_path)


class TestUpdateConfig:
    def test_adds_missing_sections(self, tmp_path: Path):
        path = _write(tmp_path, "[comments]\npage_size = 10\n")
        _, added, deprecated = update_config(cwd=tmp_path)
        assert added == ["[ai_review]", "[reviewers.coderabbit]", "[cache]"]
        assert deprecated == []
        content = path.read_text(encoding="utf-8")
        assert "page_size = 10" in content
        assert tomllib.loads(content)["cache"]["ttl_seconds"] == 30

    def test_comments_out_deprecated_keys(self, tmp_path: Path):
        path = _write(tmp_path, "[comments]\npage_size = 10\nmax_pages = 3\n")
        _, _added, deprecated = update_config(cwd=tmp_path)
        assert deprecated == ["comments.max_pages"]
        content = path.read_text(encoding="utf-8")
        assert "DEPRECATED" in content
        assert "max_pages" not in tomllib.loads(content)["comments"]

    def test_comments_out_unknown_table(self, tmp_path: Path):
        path = _write(tmp_path, '[comments]\npage_size = 10\n\n[old_section]\nkey = "val"\n')
        _, _added, deprecated = update_config(cwd=tmp_path)
        assert "old_section" in deprecated
        assert "old_section" not in tomllib.loads(path.read_text(encoding="utf-8"))

    def test_up_to_date(self, tmp_path: Path):
        _write(tmp_path, DEFAULT_CONFIG_TEMPLATE)
        _, added, deprecated = update_config(cwd=tmp_path)
        assert added == []
        assert deprecated == []

    def test_fails_if_no_config(self, tmp_path: Path):
        with pytest.raises(SystemExit):
            update_config(cwd=tmp_path)


class TestCleanConfig:
    def test_removes_deprecated_keys(self, tmp_path: Path):
        path = _write(tmp_path, "[comments]\npage_size = 10\nmax_pages = 3\n")
        _, removed = clean_config(cwd=tmp_path)
        assert removed == ["comments.max_pages"]
        content = path.read_text(encoding="utf-8")
        assert "max_pages" not in content
        assert "page_size" in content

    def test_no_deprecated_keys(self, tmp_path: Path):
        _write(tmp_path, "[comments]\npage_size = 10\n")
        _, removed = clean_config(cwd=tmp_path)
        assert removed == []

    def test_fails_if_no_config(self, tmp_path: Path):
        with pytest.raises(SystemExit):
            clean_config(cwd=tmp_path)
