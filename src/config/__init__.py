"""
Configuration package for rocketdoc

Provides application settings via environment variables using pydantic-settings,
and the project configuration (config.toml) model.
"""

from .settings import appsettings, AppSettings
from .project import ProjectConfig, project_load

__all__ = ["appsettings", "AppSettings", "ProjectConfig", "project_load"]
