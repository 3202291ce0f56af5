#!/usr/bin/env python3
"""
rocketdoc - Documentation compiler for (:directive ...) markup

Reads every .rocket source under a project's content directory, expands
user definitions and templates, resolves cross references and tables of
contents across the whole project, and writes one HTML page per source.

The command is packaged as a ChRIS plugin: chris_plugin parses the
arguments and hands main() the input and output directories.

Markup at a glance:
    (:h1 => Welcome to (:product))       heading with an evaluated body
    (:define product "Rocket")           user definition
    (:ref install)                       link to an id on any page
    (:toctree guide/install faq)         outline of other pages

Usage:
    rocketdoc inputdir/ outputdir/

    inputdir is the project root holding config.toml. Pages land in
    outputdir/ at their URLs (index.html, guide/install/index.html).

Examples:
    rocketdoc . build/
    rocketdoc . build/ --config docs.toml --jobs 4 -vv
"""

import sys
from pathlib import Path
from argparse import ArgumentParser, Namespace, ArgumentDefaultsHelpFormatter

from chris_plugin import chris_plugin
from .config import appsettings
from .config.project import project_load as projectConfig_load
from .lib import Compiler, __version__, LOG, state_connectToLogger, diagnostics_report
from .models import ProgramState, pipeline
from .models.errors import CompilationFailed, CompileError


DISPLAY_TITLE = r"""
                _        _      _
  _ __ ___  ___| | _____| |_ __| | ___   ___
 | '__/ _ \/ __| |/ / _ \ __/ _` |/ _ \ / __|
 | | | (_) | (__|   <  __/ || (_| | (_) | (__
 |_|  \___/ \___|_|\_\___|\__\__,_|\___/ \___|

  Documentation compiler
"""

# Command line
parser = ArgumentParser(
    description="rocketdoc - Documentation compiler for (:directive ...) markup",
    formatter_class=ArgumentDefaultsHelpFormatter,
)

parser.add_argument(
    "--config",
    default=appsettings.config_filename,
    type=str,
    help="Project configuration file (relative to inputdir)",
)

parser.add_argument(
    "--jobs",
    default=None,
    type=int,
    help="Worker threads used to read sources (defaults to ROCKETDOC_JOBS)",
)

parser.add_argument(
    "-v",
    "--verbosity",
    action="count",
    default=1,
    help="More output; repeat for debug detail",
)

parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")


def env_check(inputstate: ProgramState) -> ProgramState:
    """
    Make sure the project root exists and prepare the output directory.

    Sets ``envOK``. Exits with status 1 when inputdir is not a directory.
    """

    state = inputstate.copy()

    LOG(DISPLAY_TITLE, level=2)
    LOG(f"Project root: {state.inputdir}", level=2)

    if not state.inputdir or not state.inputdir.is_dir():
        print(f"Error: Project directory not found: {state.inputdir}", file=sys.stderr)
        state.envOK = False
        sys.exit(1)

    state.outputdir.mkdir(parents=True, exist_ok=True)
    LOG(f"Output directory: {state.outputdir}", level=2)

    state.envOK = True
    return state


def project_load(inputstate: ProgramState) -> ProgramState:
    """
    Read and validate the project file (config.toml unless --config says otherwise).

    Sets ``projectConfig`` and ``contentDir``. Exits with status 1 on an
    invalid project file or a missing content directory.
    """

    state = inputstate.copy()

    LOG("Loading project configuration...", level=1)

    try:
        state.projectConfig = projectConfig_load(state.inputdir, state.config)
    except CompileError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    state.contentDir = state.projectConfig.content_dir
    if not state.contentDir.is_dir():
        print(f"Error: Content directory not found: {state.contentDir}", file=sys.stderr)
        sys.exit(1)

    LOG(f"Content directory: {state.contentDir}", level=2)
    return state


def project_compile(inputstate: ProgramState) -> ProgramState:
    """
    Compile the whole project and write its pages to outputdir.

    Sets ``compileResult`` to the Compiler summary (status, output_files,
    page_count). A failed build writes nothing: every diagnostic is printed
    and the process exits with status 1.
    """

    state = inputstate.copy()

    LOG("Compiling project...", level=1)

    settings = appsettings
    if state.jobs:
        settings = appsettings.model_copy(update={"jobs": state.jobs})

    try:
        compiler = Compiler(
            content_dir=str(state.contentDir),
            output_dir=str(state.outputdir),
            config=state.projectConfig.mapping_get(),
            verbosity=state.verbosity,
            settings=settings,
        )
        state.compileResult = compiler.compile()
        LOG(f"Compilation complete: {state.compileResult['page_count']} pages", level=2)
    except CompilationFailed as e:
        state.diagnostics = [str(diagnostic) for diagnostic in e.diagnostics]
    except CompileError as e:
        state.diagnostics = [str(e)]

    if state.diagnostics:
        diagnostics_report(state.diagnostics)
        print(f"Compilation failed with {len(state.diagnostics)} error(s)", file=sys.stderr)
        sys.exit(1)

    return state


def results_report(inputstate: ProgramState) -> ProgramState:
    """Summarize a successful build; last stage of the pipeline."""
    state: ProgramState = inputstate.copy()
    if not state.compileResult:
        print("Error: Nothing was compiled", file=sys.stderr)
        sys.exit(1)

    LOG(f"Built {state.compileResult['page_count']} pages into {state.outputdir}", level=1)
    for output_file in state.compileResult['output_files']:
        LOG(f"  {output_file}", level=2)
    return state


@chris_plugin(
    parser=parser,
    title="rocketdoc - Documentation compiler",
    category="Utility",
    min_memory_limit="100Mi",
    min_cpu_limit="500m",
)
def main(options: Namespace, inputdir: Path, outputdir: Path):
    """
    Compile the project at ``inputdir`` into ``outputdir``.

    Runs env_check, project_load, project_compile and results_report
    over one ProgramState. chris_plugin supplies the parsed options
    (config, jobs, verbosity) and both directories.
    """

    state: ProgramState = ProgramState.state_createFromNamespace(
        options=options, inputdir=inputdir, outputdir=outputdir
    )

    # LOG() reads verbosity from here for the rest of the run
    state_connectToLogger(state)

    pipeline(state, env_check, project_load, project_compile, results_report)


if __name__ == "__main__":
    main()  # type: ignore  # @chris_plugin decorator transforms signature
