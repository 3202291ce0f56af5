"""
Application settings and configuration

Uses pydantic-settings for type-safe configuration via environment variables.
All settings use ROCKETDOC_ prefix (e.g., ROCKETDOC_PRETTY_URLS=false).

Settings can also be loaded from a .env file in the project root.
"""

import re
import unicodedata

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application configuration via environment variables.

    Environment variables use ROCKETDOC_ prefix.

    Examples:
        ROCKETDOC_MAX_EXPANSION_DEPTH=128
        ROCKETDOC_PYGMENTS_STYLE=friendly
        ROCKETDOC_JOBS=4
    """

    model_config = SettingsConfigDict(
        env_prefix="ROCKETDOC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Evaluation configuration
    max_expansion_depth: int = Field(
        default=64,
        description="Maximum nesting of macro/definition/include expansions before failing",
    )

    toctree_max_depth: int = Field(
        default=2,
        description="How many levels of page headings and nested toctrees a toctree expands",
    )

    # Rendering configuration
    pretty_urls: bool = Field(
        default=True,
        description="Link to pages as /slug/ (true) or /slug.html (false)",
    )

    pygments_style: str = Field(
        default="monokai",
        description="Pygments style used for code block highlighting",
    )

    figure_default_width: str = Field(
        default="100%",
        description="Width applied to figures that do not specify one",
    )

    # Project configuration
    source_suffix: str = Field(
        default=".rocket",
        description="File suffix of markup sources under the content directory",
    )

    config_filename: str = Field(
        default="config.toml",
        description="Project configuration file name (relative to the project root)",
    )

    jobs: int = Field(
        default=1,
        description="Worker threads used to read and build sources (1 = sequential)",
    )

    debug_mode: bool = Field(
        default=False,
        description="Enable debug output during compilation",
    )

    def slug_make(self, title: str) -> str:
        """
        Derive an anchor-safe identifier from a heading title

        Accents are dropped after NFKD normalisation; letters of any script
        are kept.

        Args:
            title: Heading text

        Returns:
            Lower-case slug of word characters joined by single hyphens

        Example:
            >>> settings = AppSettings()
            >>> settings.slug_make('Getting Started: Install!')
            'getting-started-install'
            >>> settings.slug_make('Überblick')
            'uberblick'
        """
        decomposed = unicodedata.normalize("NFKD", title)
        text = "".join(char for char in decomposed if not unicodedata.combining(char))
        slug = re.sub(r"[^\w]+", "-", text.lower(), flags=re.UNICODE)
        slug = re.sub(r"-{2,}", "-", slug)
        return slug.strip("-") or "section"

    def href_make(self, slug: str, anchor: str | None = None) -> str:
        """
        Build the URL of a page (and optional fragment)

        Example:
            >>> settings = AppSettings()
            >>> settings.href_make('guide/install', 'linux')
            '/guide/install/#linux'
            >>> settings.href_make('index')
            '/'
        """
        if self.pretty_urls:
            if slug == "index":
                path = "/"
            elif slug.endswith("/index"):
                path = f"/{slug[:-len('index')]}"
            else:
                path = f"/{slug}/"
        else:
            path = f"/{slug}.html"

        if anchor:
            return f"{path}#{anchor}"
        return path


# Singleton instance - import this in your code
appsettings = AppSettings()
