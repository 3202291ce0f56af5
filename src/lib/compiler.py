"""
Compiler for rocketdoc projects

Drives one build over a content directory:

    discover sources -> read + build each file (fork/join) -> evaluate each
    document -> collect references (all documents) -> resolve -> render
    -> write pages

Syntax and structure errors from every file are gathered and reported
together before evaluation starts. Any evaluation or resolution error
aborts the build before a single page is written.
"""

import os
import html
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

from ..config import appsettings, AppSettings
from ..models.document import CompilationUnit, Document, SourceLoader, file_read
from ..models.errors import CompilationFailed, CompileError, SourceLoadError
from ..models.nodes import Node
from .builder import Builder
from .directives import DirectiveRegistry
from .evaluator import Evaluator
from .log import LOG
from .reader import Reader
from .renderer import Renderer
from .resolver import Resolver


PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
<main>
{body}
</main>
</body>
</html>
"""


class Compiler:
    """
    Compiles a directory of .rocket sources to HTML pages

    Responsibilities:
    - Discover sources and map them to page slugs
    - Read and build files (in parallel when settings.jobs > 1)
    - Evaluate, resolve and render every document
    - Wrap and write pages

    Args:
        content_dir: Directory holding the .rocket sources
        output_dir: Directory receiving the pages (None = render only)
        config: Opaque project mapping (version, theme_constants)
        verbosity: Output verbosity level (0-3)
        loader: Source loader (defaults to reading UTF-8 files)
        settings: Application settings
    """

    def __init__(
        self,
        content_dir: str,
        output_dir: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        verbosity: int = 1,
        loader: Optional[SourceLoader] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self.content_dir = Path(content_dir)
        self.output_dir = Path(output_dir) if output_dir else None
        self.config: Dict[str, Any] = dict(config or {})
        self.verbosity = verbosity
        self.loader: SourceLoader = loader or file_read
        self.settings = settings or appsettings
        self.directives = DirectiveRegistry()
        self.builder = Builder(self.directives)
        self.renderer = Renderer(self.settings)

    def compile(self) -> Dict[str, Any]:
        """
        Compile the project and write its pages

        Returns:
            dict with compilation results and statistics

        Raises:
            CompilationFailed: Every diagnostic of the failed build
        """
        LOG("Starting compilation...", level=2)

        unit = self.unit_load()
        pages = self.unit_compile(unit)

        output_files: List[str] = []
        if self.output_dir is not None:
            for slug, body in pages.items():
                output_file = self.output_dir / self.page_path(slug)
                output_file.parent.mkdir(parents=True, exist_ok=True)
                output_file.write_text(self.page_wrap(unit.documents[slug], body), encoding='utf-8')
                output_files.append(str(output_file))
                LOG(f"Wrote {output_file}", level=2)

        return {
            'status': True,
            'output_files': output_files,
            'page_count': len(pages),
        }

    def sources_discover(self) -> List[Path]:
        """Every source file under the content directory, in path order"""
        if not self.content_dir.is_dir():
            raise SourceLoadError(f"content directory '{self.content_dir}' does not exist")
        sources = sorted(
            path for path in self.content_dir.rglob(f"*{self.settings.source_suffix}") if path.is_file()
        )
        LOG(f"Found {len(sources)} source files in {self.content_dir}", level=2)
        return sources

    def slug_make(self, path: Path) -> str:
        """Page slug: content-relative path without the suffix (guide/install)"""
        return path.relative_to(self.content_dir).with_suffix("").as_posix()

    def document_parse(self, path: Path) -> Tuple[List[Node], List[CompileError]]:
        """
        Read and build one source file

        Pure per-file step, safe to run on worker threads.

        Returns:
            Built top-level nodes and the diagnostics collected for the file
        """
        key = os.path.normpath(str(path))
        try:
            source = self.loader(key)
        except OSError as e:
            return [], [SourceLoadError(f"cannot read '{key}': {e.strerror or e}")]

        reader = Reader(source, path=key, debug=self.settings.debug_mode or self.verbosity >= 3)
        forms = reader.read()
        diagnostics: List[CompileError] = list(reader.diagnostics)

        try:
            nodes = self.builder.build(forms)
        except CompileError as e:
            diagnostics.append(e)
            nodes = []

        return nodes, diagnostics

    def unit_load(self, paths: Optional[List[Path]] = None) -> CompilationUnit:
        """
        Create the compilation unit with one document per source

        Raises:
            CompilationFailed: Any file failed to read or build
        """
        if paths is None:
            paths = self.sources_discover()

        if self.settings.jobs > 1:
            LOG(f"Parsing {len(paths)} files on {self.settings.jobs} threads", level=2)
            with ThreadPoolExecutor(max_workers=self.settings.jobs) as executor:
                results = list(executor.map(self.document_parse, paths))
        else:
            results = [self.document_parse(path) for path in paths]

        unit = CompilationUnit(config=self.config, loader=self.loader)
        diagnostics: List[CompileError] = []
        for path, (nodes, errors) in zip(paths, results):
            diagnostics.extend(errors)
            try:
                unit.document_create(os.path.normpath(str(path)), self.slug_make(path), nodes)
            except CompileError as e:
                diagnostics.append(e)

        if diagnostics:
            raise CompilationFailed(diagnostics)
        return unit

    def unit_compile(self, unit: CompilationUnit) -> Dict[str, str]:
        """
        Evaluate, resolve and render every document of a unit

        Returns:
            Rendered page bodies keyed by slug

        Raises:
            CompilationFailed: Wraps the first evaluation/resolution error
        """
        try:
            for document in unit.documents_list():
                Evaluator(
                    unit,
                    document,
                    registry=self.directives,
                    builder=self.builder,
                    settings=self.settings,
                ).evaluate()

            Resolver(unit, self.settings).resolve()

            pages: Dict[str, str] = {}
            for document in unit.documents_list():
                pages[document.slug] = self.renderer.render(document.nodes)
            LOG(f"Rendered {len(pages)} pages", level=2)
            return pages
        except CompilationFailed:
            raise
        except CompileError as e:
            raise CompilationFailed([e]) from e

    def page_path(self, slug: str) -> Path:
        """Output file for a page, matching the URL produced by href_make"""
        href = self.settings.href_make(slug).lstrip('/')
        if not href or href.endswith('/'):
            return Path(href) / "index.html"
        return Path(href)

    def page_wrap(self, document: Document, body: str) -> str:
        """Wrap a rendered body in a minimal HTML page"""
        title = document.title_get()
        site = self.config.get('theme_constants', {}).get('title')
        if site and site != title:
            title = f"{title} - {site}"
        return PAGE_TEMPLATE.format(title=html.escape(title), body=body)
