"""
Build state carried through the CLI stages

ProgramState is handed from stage to stage by pipeline(); every stage
returns a copy with the fields it is responsible for filled in.
"""

import dataclasses
from pathlib import Path
from argparse import Namespace
from functools import reduce
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar
from dataclasses import dataclass, field


PS = TypeVar("PS", bound="ProgramState")
Stage = Callable[["ProgramState"], "ProgramState"]


@dataclass
class ProgramState:
    """
    Everything one rocketdoc invocation knows, stage by stage

        env_check        -> envOK
        project_load     -> projectConfig, contentDir
        project_compile  -> compileResult, or diagnostics before exiting
        results_report   -> nothing (reports only)

    Attributes:
        inputdir: Project root holding config.toml
        outputdir: Where pages are written
        verbosity: 0 silent, 1 normal, 2 verbose, 3 debug
        config: Name of the project file inside inputdir
        jobs: Reader threads requested on the command line (None = settings)
        envOK: Project root exists and outputdir was created
        projectConfig: The validated ProjectConfig
        contentDir: Absolute directory scanned for .rocket sources
        compileResult: Summary returned by Compiler.compile()
        diagnostics: One formatted line per error of a failed build
    """

    # From the command line
    inputdir: Optional[Path] = field(default=None)
    outputdir: Optional[Path] = field(default=None)
    verbosity: int = field(default=1)
    config: str = field(default="config.toml")
    jobs: Optional[int] = field(default=None)

    # Filled in by the stages
    envOK: bool = field(default=False)
    projectConfig: Optional[Any] = field(default=None)
    contentDir: Path = field(default=Path("/"))
    compileResult: Optional[Dict] = field(default=None)
    diagnostics: List[str] = field(default_factory=list)

    @classmethod
    def state_createFromNamespace(
        cls: Type[PS], options: Namespace, inputdir: Path, outputdir: Path
    ) -> PS:
        """
        Initial state from parsed CLI options

        Options that are not ProgramState fields (chris_plugin adds its own)
        are ignored; inputdir and outputdir always come from the arguments.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        values = {name: value for name, value in vars(options).items() if name in known}
        values.update(inputdir=inputdir, outputdir=outputdir)
        return cls(**values)

    def copy(self: PS) -> PS:
        """Shallow copy, so a stage never mutates its input state"""
        return dataclasses.replace(self)


def pipeline(initial_state: ProgramState, *stages: Stage) -> ProgramState:
    """
    Run stages left to right, feeding each the state returned by the last

        pipeline(state, env_check, project_load, project_compile, results_report)

    is results_report(project_compile(project_load(env_check(state)))).
    """
    return reduce(lambda state, stage: stage(state), stages, initial_state)
