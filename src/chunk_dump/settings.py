from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "CHUNK_DUMP_"
DEFAULT_LIMIT = 110_000


def env_default(name: str, fallback: str = "") -> str:
    """Read a ``CHUNK_DUMP_*`` default from the environment, then from the nearest ``.env``.

    Args:
        name (str): variable name without the prefix (e.g. "LIMIT")
        fallback (str): value returned when neither source defines it

    Returns:
        str: the configured value or `fallback`
    """
    key = ENV_PREFIX + name
    if key in os.environ:
        return os.environ[key]
    if ENV_FILE:
        value = dotenv_values(ENV_FILE).get(key)
        if value is not None:
            return value
    return fallback


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load settings defaults from a YAML mapping.

    Keys are Settings field names (``limit``, ``include``, ``exclude``...).

    Args:
        path (str | Path): the YAML file to read

    Raises:
        ValueError: if the document is not a mapping

    Returns:
        dict[str, Any]: the parsed mapping, empty for an empty document
    """
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        msg = f"Config file {path} must contain a mapping, got {type(data).__name__}"
        raise ValueError(msg)
    return data


class Settings(BaseModel):
    """Configuration settings for the chunk_dump module."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    path: Path = Field(..., description="Source directory to scan.")
    out: str = Field(..., description="Output path pattern, '*' is replaced by the chunk number.")
    type: str = Field(default="", description="Main file extension(s) to dump, comma separated.")
    clean: bool = Field(default=False, description="Remove comments and empty lines.")
    progress: bool = Field(default=False, description="Show a progress bar.")
    limit: int = Field(
        default_factory=lambda: int(env_default("LIMIT", str(DEFAULT_LIMIT))),
        gt=0,
        description="Character limit per output file.",
    )
    include: list[str] = Field(default_factory=list, description="Extra files or substrings to include.")
    exclude: list[str] = Field(default_factory=list, description="Path components to exclude.")
    include_file: list[Path] = Field(default_factory=list, description="Files listing include patterns.")
    exclude_file: list[Path] = Field(default_factory=list, description="Files listing exclude patterns.")
    log_file: str = Field(
        default_factory=lambda: env_default("LOG_FILE"),
        description="Log file path.",
    )

    @field_validator("out")
    @classmethod
    def _check_out(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "Output pattern must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("include", "exclude", mode="before")
    @classmethod
    def _split_commas(cls, value: Any) -> list[str]:  # noqa: ANN401
        if value is None:
            return []
        items = [value] if isinstance(value, str) else list(value)
        out: list[str] = []
        for item in items:
            out.extend(part.strip() for part in str(item).split(",") if part.strip())
        return out

    @computed_field
    @property
    def extensions(self) -> list[str]:
        """Normalized main extensions, lowercase and without the leading dot."""
        exts = (part.strip().lstrip(".").lower() for part in self.type.split(","))
        return list(dict.fromkeys(e for e in exts if e))

    @computed_field
    @property
    def display_ext(self) -> str:
        """Extension substituted for ``{type}`` in the output pattern (e.g. ``.php``)."""
        return f".{self.extensions[0]}" if self.extensions else ""
