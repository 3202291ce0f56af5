"""
Project configuration (config.toml)

The project file is read with tomllib and validated with pydantic. The
compiler core only ever sees the resulting mapping; it never interprets
theme constants itself.

Example config.toml:

    content_dir = "content"
    output = "build"
    version = "3.4.0"

    [theme_constants]
    title = "Rocket Docs"
"""

import tomllib
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, Field, ValidationError

from ..models.errors import ConfigurationError


class ProjectConfig(BaseModel):
    """Validated contents of a project's config.toml"""

    content_dir: Path = Field(default=Path("content"), description="Directory holding .rocket sources")
    # The CLI writes to its outputdir argument instead
    output: Path = Field(default=Path("build"), description="Directory receiving rendered pages when compiling without the CLI")
    version: str = Field(default="", description="Project version reported by (:version)")
    theme_constants: Dict[str, Any] = Field(default_factory=dict)

    def mapping_get(self) -> Dict[str, Any]:
        """Opaque mapping handed to the compilation unit"""
        return {
            "version": self.version,
            "theme_constants": dict(self.theme_constants),
        }


def project_load(root: Path, filename: str = "config.toml") -> ProjectConfig:
    """
    Load and validate a project configuration

    Relative content/output directories are resolved against the project
    root. A missing file yields the defaults.

    Raises:
        ConfigurationError: File is not valid TOML or fails validation
    """
    config_path = root / filename
    data: Dict[str, Any] = {}

    if config_path.exists():
        try:
            data = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"{config_path}: {e}")

    try:
        config = ProjectConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"{config_path}: {e}")

    if not config.content_dir.is_absolute():
        config.content_dir = root / config.content_dir
    if not config.output.is_absolute():
        config.output = root / config.output
    return config
