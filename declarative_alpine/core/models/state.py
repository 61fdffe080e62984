"""
Observed-state and diff models for the two domains.

Current state is rebuilt from the OS databases on every read and is
never persisted. Diffs are computed once, reported, applied and
discarded.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field

from declarative_alpine.core.models.desired import UserSpec


class UserRecord(BaseModel):
    """A local account as reconstructed from the identity and group files.

    There is deliberately no password field: credentials are write-only.
    """

    model_config = ConfigDict(frozen=True)

    username: str
    groups: frozenset[str] = Field(default_factory=frozenset)
    shell: str = ""
    home: str = ""
    uid: int
    gid: int

    def matches(self, spec: UserSpec) -> bool:
        """Whether ``spec`` would leave this account untouched.

        uid/gid only count when the spec pins them. A spec carrying a
        password never matches, because the current credential is never
        read back: declaring a password means reasserting it every run.
        """
        if spec.password is not None:
            return False
        if spec.uid is not None and spec.uid != self.uid:
            return False
        if spec.gid is not None and spec.gid != self.gid:
            return False
        return (
            self.groups == spec.groups
            and self.shell == spec.shell
            and self.home == spec.home
        )


@dataclass(frozen=True)
class PackagesDiff:
    """Atoms to add to and drop from the world file."""

    to_install: frozenset[str] = field(default_factory=frozenset)
    to_remove: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not self.to_install and not self.to_remove

    def to_dict(self) -> dict:
        return {
            "to_install": sorted(self.to_install),
            "to_remove": sorted(self.to_remove),
        }


@dataclass(frozen=True)
class UsersDiff:
    """Accounts to create, rewrite and delete."""

    to_add: tuple[UserSpec, ...] = ()
    to_update: tuple[tuple[str, UserSpec], ...] = ()
    to_remove: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_update and not self.to_remove

    def to_dict(self) -> dict:
        return {
            "to_add": [_spec_summary(s) for s in self.to_add],
            "to_update": [_spec_summary(s) for _, s in self.to_update],
            "to_remove": list(self.to_remove),
        }


def _spec_summary(spec: UserSpec) -> dict:
    """JSON-safe view of a spec with the credential masked."""
    data = spec.model_dump(mode="json", exclude={"password"})
    data["groups"] = sorted(spec.groups)
    data["password"] = None if spec.password is None else "<set>"
    return data
