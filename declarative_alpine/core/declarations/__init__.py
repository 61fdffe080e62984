"""
Declarations — the complete set of managed domains.

The set is closed: a desired-state document can declare ``packages``
and ``users``, reconciled in that order.
"""

from __future__ import annotations

from declarative_alpine.adapters.base import CommandRunner
from declarative_alpine.core.declarations.base import ApplyResult, Declaration
from declarative_alpine.core.declarations.packages import PackagesDeclaration
from declarative_alpine.core.declarations.users import UsersDeclaration
from declarative_alpine.core.models.desired import SystemConfig

DOMAINS: dict[str, type[Declaration]] = {
    "packages": PackagesDeclaration,
    "users": UsersDeclaration,
}


def build_declaration(domain: str, system: SystemConfig, runner: CommandRunner) -> Declaration:
    """Instantiate the declaration for ``domain``."""
    try:
        cls = DOMAINS[domain]
    except KeyError:
        raise ValueError(f"Unknown domain '{domain}'. Valid: {', '.join(DOMAINS)}") from None
    return cls(system, runner)


__all__ = [
    "DOMAINS",
    "ApplyResult",
    "Declaration",
    "PackagesDeclaration",
    "UsersDeclaration",
    "build_declaration",
]
