"""
Logging for rocketdoc, built on loguru.

Two kinds of output go to stderr:

    LOG(message, level)
        Progress messages, shown when the verbosity of the ProgramState
        bound with state_connectToLogger() is at least ``level``. The state
        lives in a ContextVar, so library code logs without being handed it.

    diagnostics_report(diagnostics)
        Compiler errors, always shown, one bare ``path:line:column: Error:
        message`` line each so editors can jump to the location.

Usage:
    from rocketdoc.lib.log import LOG, state_connectToLogger

    state_connectToLogger(state)
    LOG("Compiling project...", level=1)
    LOG("Collected 42 reference ids", level=2)
    LOG("Expanding (:jira) at guide.rocket:3:1", level=3)
"""

import sys
from contextvars import ContextVar
from typing import Any, Iterable, Optional

from loguru import logger

_program_state: ContextVar[Optional[Any]] = ContextVar('program_state', default=None)

logger_format = (
    "<green>{time:HH:mm:ss}</green> │ "
    "<level>{level: <5}</level> │ "
    "<cyan>{module}.{function}</cyan>:<cyan>{line}</cyan> ║ "
    "<level>{message}</level>"
)


def _is_diagnostic(record: Any) -> bool:
    return bool(record["extra"].get("diagnostic"))


logger.remove()
logger.add(
    sys.stderr,
    format=logger_format,
    level="DEBUG",
    filter=lambda record: not _is_diagnostic(record),
)
logger.add(sys.stderr, format="{message}", level="ERROR", filter=_is_diagnostic)

_diagnostics = logger.bind(diagnostic=True)


def state_connectToLogger(state: Any) -> None:
    """
    Bind the ProgramState whose verbosity gates LOG() in this context

    Args:
        state: Any object with a ``verbosity`` attribute (a ProgramState)
    """
    _program_state.set(state)


def LOG(message: str, level: int = 1, **kwargs: Any) -> None:
    """
    Log a progress message if the bound state is verbose enough

    Args:
        message: Text to log
        level: 1 normal, 2 verbose (-v), 3 debug (-vv)
        **kwargs: Passed on to loguru (e.g. exception=True)
    """
    state = _program_state.get()
    if state is None or getattr(state, 'verbosity', 0) < level:
        return
    logger.opt(depth=1).debug(message, **kwargs)


def diagnostics_report(diagnostics: Iterable[Any]) -> int:
    """
    Print compiler diagnostics to stderr, whatever the verbosity

    Args:
        diagnostics: CompileError instances or preformatted lines

    Returns:
        Number of diagnostics printed
    """
    count = 0
    for diagnostic in diagnostics:
        _diagnostics.error(str(diagnostic))
        count += 1
    return count
