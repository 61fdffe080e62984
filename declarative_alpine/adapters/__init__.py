"""Runners — bindings for the external utilities the domains invoke.

Public re-exports for convenient access.
"""

from declarative_alpine.adapters.base import CommandRunner
from declarative_alpine.adapters.mock import MockCommandRunner
from declarative_alpine.adapters.shell.command import ShellCommandRunner

__all__ = [
    "CommandRunner",
    "MockCommandRunner",
    "ShellCommandRunner",
]
