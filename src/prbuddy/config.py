"""Configuration for prbuddy.

Loads ``.prbuddy.toml`` from the project root (walking up to ``.git``),
validates it with Pydantic, and falls back to defaults so zero-config works.
The active config hot-reloads when the file's mtime changes.
"""

from __future__ import annotations

import logging
import tomllib
import typing
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from prbuddy.models import AIReviewOptions, SortMode
from prbuddy.pagination import MAX_PAGE_SIZE

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".prbuddy.toml"


class CommentsConfig(BaseModel):
    """Defaults for ``find_unresolved_comments``."""

    model_config = ConfigDict(extra="ignore")

    page_size: int = Field(default=20, ge=1, le=MAX_PAGE_SIZE, description="Server page size; larger requests are clamped to it")
    default_sort: SortMode = Field(default=SortMode.PRIORITY, description="Sort mode used when the caller omits one")
    parse_review_bodies: bool = Field(default=True, description="Parse structured AI review bodies into comments")
    include_status_indicators: bool = Field(default=True, description="Score comments (priority, resolution status)")
    priority_ordering: bool = Field(default=True, description="Allow priority sort and status grouping")


class ReviewerConfig(BaseModel):
    """Configuration for a single review-body parser."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = Field(default=True, description="Whether this reviewer's review bodies are parsed")


class CacheConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ttl_seconds: float = Field(default=30.0, ge=0, description="GitHub response cache lifetime; 0 disables caching")


class Config(BaseModel):
    """Top-level prbuddy configuration."""

    model_config = ConfigDict(extra="ignore")

    comments: CommentsConfig = Field(default_factory=CommentsConfig, description="Comment listing defaults")
    ai_review: AIReviewOptions = Field(default_factory=AIReviewOptions, description="Default AI review filters")
    reviewers: dict[str, ReviewerConfig] = Field(default_factory=dict, description="Per-reviewer parser settings")
    cache: CacheConfig = Field(default_factory=CacheConfig, description="GitHub response cache settings")

    def get_reviewer(self, name: str) -> ReviewerConfig:
        """Config for a reviewer; unknown reviewers are enabled."""
        return self.reviewers.get(name, ReviewerConfig())


def _get_dict_value_model(annotation: Any) -> type[BaseModel] | None:
    """Return ``SomeModel`` for a ``dict[str, SomeModel]`` annotation, else ``None``."""
    args = typing.get_args(annotation)
    if len(args) == 2 and isinstance(args[1], type) and issubclass(args[1], BaseModel):  # noqa: PLR2004
        return args[1]
    return None


def _collect_unknown_keys(
    data: dict[str, Any],
    model_cls: type[BaseModel],
    prefix: str = "",
) -> list[str]:
    """Dotted paths of keys in *data* that *model_cls* does not define.

    Unknown reviewer names under ``[reviewers.*]`` are allowed; unknown keys
    inside each reviewer table are not.
    """
    known = set(model_cls.model_fields)
    unknown: list[str] = []

    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if key not in known:
            unknown.append(dotted)
            continue
        annotation = model_cls.model_fields[key].annotation
        if isinstance(annotation, type) and issubclass(annotation, BaseModel) and isinstance(value, dict):
            unknown.extend(_collect_unknown_keys(value, annotation, prefix=f"{dotted}."))
            continue
        value_model = _get_dict_value_model(annotation)
        if value_model is not None and isinstance(value, dict):
            for sub_key, sub_value in value.items():
                if isinstance(sub_value, dict):
                    unknown.extend(_collect_unknown_keys(sub_value, value_model, prefix=f"{dotted}.{sub_key}."))

    return unknown


def _find_config_file(start: Path) -> Path | None:
    """Walk up from *start* looking for the config file, stopping at the ``.git`` root."""
    current = start.resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        if (current / ".git").exists():
            return None
        current = current.parent


def _parse(raw: str, source: Path) -> Config:
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {source}: {exc}"
        raise ValueError(msg) from exc

    try:
        config = Config.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid config in {source}: {exc}"
        raise ValueError(msg) from exc

    for key in _collect_unknown_keys(data, Config):
        logger.warning("Unknown config key '%s' in %s (run 'prbuddy config --update' to clean up)", key, source)
    return config


def load_config(cwd: str | Path | None = None) -> tuple[Config, Path | None]:
    """Load ``.prbuddy.toml`` starting from *cwd* (default: current directory).

    Returns:
        ``(config, config_path)``; the path is ``None`` when no file was found
        and is what :func:`set_config` needs for hot-reload.

    Raises:
        ValueError: On invalid TOML or invalid values, so the server refuses
            to start with a broken config.
    """
    start = Path(cwd) if cwd else Path.cwd()
    config_path = _find_config_file(start)

    if config_path is None:
        logger.info("No %s found, using defaults", CONFIG_FILENAME)
        return Config(), None

    logger.info("Loading config from %s", config_path)
    return _parse(config_path.read_text(encoding="utf-8"), config_path), config_path


# -- Hot-reloading config with mtime cache ------------------------------------

ReloadCallback = Callable[[Config], None]


class _ConfigState:
    """Active config, its file path and mtime."""

    __slots__ = ("callbacks", "config", "mtime", "path")

    def __init__(self) -> None:
        self.config: Config = Config()
        self.path: Path | None = None
        self.mtime: float | None = None
        self.callbacks: list[ReloadCallback] = []

    def swap(self, config: Config) -> None:
        self.config = config
        for cb in self.callbacks:
            try:
                cb(config)
            except Exception:
                logger.exception("Config reload callback failed")


_state = _ConfigState()


def get_config() -> Config:
    """Return the active configuration, reloading it if the file changed.

    A deleted file falls back to defaults; an invalid edit keeps the last good
    config until the file changes again.
    """
    path = _state.path
    if path is None:
        return _state.config

    try:
        current_mtime = path.stat().st_mtime
    except OSError:
        if _state.mtime is not None:
            logger.warning("%s deleted, falling back to defaults", path.name)
            _state.mtime = None
            _state.swap(Config())
        return _state.config

    if current_mtime == _state.mtime:
        return _state.config

    logger.info("Config file changed (mtime %.0f -> %.0f), reloading", _state.mtime or 0, current_mtime)
    _state.mtime = current_mtime
    try:
        new_config = _parse(path.read_text(encoding="utf-8"), path)
    except (OSError, ValueError) as exc:
        logger.warning("Invalid config after edit, keeping last good config: %s", exc)
        return _state.config

    _state.swap(new_config)
    logger.info("Config hot-reloaded")
    return new_config


def set_config(config: Config, *, config_path: Path | None = None) -> None:
    """Install *config* as the active configuration.

    With *config_path*, later :func:`get_config` calls watch that file.
    """
    _state.config = config
    _state.path = config_path
    try:
        _state.mtime = config_path.stat().st_mtime if config_path else None
    except OSError:
        _state.mtime = None


def get_config_path() -> Path | None:
    """Path of the active config file, or ``None`` when running on defaults."""
    return _state.path


def register_reload_callback(callback: ReloadCallback) -> None:
    """Call *callback* with the new ``Config`` after every hot-reload."""
    _state.callbacks.append(callback)


def clear_reload_callbacks() -> None:
    _state.callbacks.clear()


# -- Template sections for ``prbuddy config`` ----------------------------------

_TEMPLATE_HEADER = """\
# .prbuddy.toml: settings for the prbuddy MCP server
# All settings are optional. Omitted values use the defaults shown here.
# Place this file in your project root (next to .git/).
"""

_TEMPLATE_SECTIONS: list[tuple[str, str]] = [
    (
        "[comments]",
        """\
[comments]
page_size = 20                    # Max comments per page; larger requests are clamped
default_sort = "priority"         # chronological | by_file | by_author | priority
parse_review_bodies = true        # Turn structured AI review bodies into comments
include_status_indicators = true  # Score comments and attach status indicators
priority_ordering = true          # Allow priority sort and status groups
""",
    ),
    (
        "[ai_review]",
        """\
[ai_review]
include_nits = true
include_duplicates = true
include_additional = true
# suggestion_types = ["actionable", "nit"]  # Allow-list; all types when unset
prioritize_actionable = false
group_by_type = false
extract_agent_prompts = true      # Attach agent prompts and implementation guidance
""",
    ),
    (
        "[reviewers.coderabbit]",
        """\
[reviewers.coderabbit]
enabled = true                    # Parse CodeRabbit review bodies
""",
    ),
    (
        "[cache]",
        """\
[cache]
ttl_seconds = 30                  # GitHub response cache lifetime; 0 disables it
""",
    ),
]

DEFAULT_CONFIG_TEMPLATE = _TEMPLATE_HEADER + "\n" + "\n".join(block for _, block in _TEMPLATE_SECTIONS)


def init_config(cwd: Path | None = None) -> Path:
    """Create ``.prbuddy.toml`` in *cwd*.

    Raises ``SystemExit(1)`` if the file already exists.
    """
    target = (cwd or Path.cwd()) / CONFIG_FILENAME
    if target.exists():
        print(f"Error: {CONFIG_FILENAME} already exists in {target.parent}")  # noqa: T201
        print("Hint: use 'prbuddy config --update' to add new sections")  # noqa: T201
        raise SystemExit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    print(f"Created {target}")  # noqa: T201
    return target


def _require_existing(cwd: Path | None) -> Path:
    target = (cwd or Path.cwd()) / CONFIG_FILENAME
    if not target.exists():
        print(f"Error: {CONFIG_FILENAME} not found in {target.parent}")  # noqa: T201
        print("Hint: use 'prbuddy config --init' to create one")  # noqa: T201
        raise SystemExit(1)
    return target


def _rewrite_unknown_keys(target: Path, *, keep_as_comment: bool) -> list[str]:
    """Comment out or delete unknown keys with tomlkit, preserving formatting."""
    import tomlkit  # noqa: PLC0415

    raw = target.read_text(encoding="utf-8")
    unknown = _collect_unknown_keys(tomllib.loads(raw), Config)
    if not unknown:
        return []

    doc = tomlkit.loads(raw)
    for dotted in unknown:
        *parents, key = dotted.split(".")
        container: Any = doc
        for part in parents:
            container = container[part]
        value = container[key]
        del container[key]
        if keep_as_comment:
            rendered = tomlkit.item(value).as_string() if not isinstance(value, dict) else repr(dict(value))
            container.add(tomlkit.comment(f"DEPRECATED: {key} = {rendered}"))

    target.write_text(tomlkit.dumps(doc), encoding="utf-8")
    return unknown


def update_config(cwd: Path | None = None) -> tuple[Path, list[str], list[str]]:
    """Append missing template sections and comment out unknown keys.

    Returns:
        ``(config path, added section headers, commented-out keys)``.
    """
    target = _require_existing(cwd)

    deprecated = _rewrite_unknown_keys(target, keep_as_comment=True)
    if deprecated:
        print(f"Commented out {len(deprecated)} deprecated key(s):")  # noqa: T201
        for d in deprecated:
            print(f"  # {d}")  # noqa: T201

    existing = target.read_text(encoding="utf-8")
    added = [header for header, _ in _TEMPLATE_SECTIONS if header not in existing]

    if added:
        appendix = "" if existing.endswith("\n") else "\n"
        appendix += "\n# --- New sections added by 'prbuddy config --update' ---\n\n"
        appendix += "\n".join(block for header, block in _TEMPLATE_SECTIONS if header in added)
        target.write_text(existing + appendix, encoding="utf-8")
        print(f"Added {len(added)} section(s):")  # noqa: T201
        for h in added:
            print(f"  + {h}")  # noqa: T201

    if not added and not deprecated:
        print(f"{CONFIG_FILENAME} is up to date, nothing to change")  # noqa: T201

    return target, added, deprecated


def clean_config(cwd: Path | None = None) -> tuple[Path, list[str]]:
    """Delete unknown keys from ``.prbuddy.toml``.

    Returns:
        ``(config path, removed key paths)``.
    """
    target = _require_existing(cwd)

    removed = _rewrite_unknown_keys(target, keep_as_comment=False)
    if removed:
        print(f"Removed {len(removed)} deprecated key(s) from {target}:")  # noqa: T201
        for r in removed:
            print(f"  - {r}")  # noqa: T201
    else:
        print(f"{CONFIG_FILENAME} is clean, no deprecated keys found")  # noqa: T201

    return target, removed
