"""
Desired-state models — what the operator declares.

Loaded once per invocation from the desired-state document.
A domain whose key is absent is unmanaged; an empty list is managed
and means "nothing of this kind should exist".
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Credentials starting with this marker are stored verbatim, not hashed
HASH_PREFIX = "$"


class UserSpec(BaseModel):
    """One declared local account."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    username: str = Field(min_length=1)
    groups: frozenset[str] = Field(default_factory=frozenset)
    password: str | None = None     # plaintext, pre-hashed ("$..."), or absent
    shell: str = "/bin/ash"
    home: str = ""
    uid: int | None = Field(default=None, ge=0)
    gid: int | None = Field(default=None, ge=0)

    @field_validator("username")
    @classmethod
    def _no_separator(cls, v: str) -> str:
        if ":" in v or "," in v or "\n" in v:
            raise ValueError(f"invalid character in username {v!r}")
        return v

    @field_validator("shell", "home")
    @classmethod
    def _single_field(cls, v: str) -> str:
        if ":" in v or "\n" in v:
            raise ValueError(f"':' and newlines are not allowed in {v!r}")
        return v

    @field_validator("groups")
    @classmethod
    def _valid_group_names(cls, v: frozenset[str]) -> frozenset[str]:
        for name in v:
            if not name or ":" in name or "," in name or "\n" in name:
                raise ValueError(f"invalid group name {name!r}")
        return v

    @field_validator("password", mode="before")
    @classmethod
    def _blank_is_absent(cls, v: object) -> object:
        return None if v == "" else v

    @field_validator("password")
    @classmethod
    def _storable_hash(cls, v: str | None) -> str | None:
        # Pre-hashed values go into the shadow record as-is
        if v is not None and v.startswith(HASH_PREFIX) and (":" in v or "\n" in v):
            raise ValueError("':' and newlines are not allowed in a pre-hashed password")
        return v

    @model_validator(mode="before")
    @classmethod
    def _default_home(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("home") and data.get("username"):
            data = {**data, "home": f"/home/{data['username']}"}
        return data

    @property
    def password_is_hashed(self) -> bool:
        return self.password is not None and self.password.startswith(HASH_PREFIX)


class SystemConfig(BaseModel):
    """Where the backing stores live and which utilities to invoke.

    Every path the domains touch comes from here, so tests (and
    chroot-style targets) can redirect them.
    """

    model_config = ConfigDict(extra="forbid")

    world_file: Path = Path("/etc/apk/world")
    passwd_file: Path = Path("/etc/passwd")
    shadow_file: Path = Path("/etc/shadow")
    group_file: Path = Path("/etc/group")
    lock_file: Path = Path("/run/declarative-alpine.lock")
    audit_log: Path | None = Path("/var/log/declarative-alpine/audit.ndjson")
    backup_suffix: str = ".bak"

    upgrade_command: list[str] = Field(default_factory=lambda: ["apk", "upgrade"])
    hash_command: list[str] = Field(default_factory=lambda: ["mkpasswd"])
    mkdir_command: list[str] = Field(default_factory=lambda: ["mkdir", "-p"])

    @field_validator("audit_log", mode="before")
    @classmethod
    def _empty_disables_audit(cls, v: object) -> object:
        return None if v == "" else v

    @field_validator("upgrade_command", "hash_command", "mkdir_command")
    @classmethod
    def _non_empty_argv(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("command must have at least one element")
        return v


class DesiredState(BaseModel):
    """Root of the desired-state document."""

    model_config = ConfigDict(extra="forbid")

    packages: list[str] | None = None
    users: list[UserSpec] | None = None
    system: SystemConfig = Field(default_factory=SystemConfig)

    @field_validator("packages")
    @classmethod
    def _clean_atoms(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        atoms = [a.strip() for a in v]
        for atom in atoms:
            if not atom or any(c.isspace() for c in atom):
                raise ValueError(f"invalid package atom {atom!r}")
        return atoms

    @field_validator("users")
    @classmethod
    def _unique_usernames(cls, v: list[UserSpec] | None) -> list[UserSpec] | None:
        if v is None:
            return None
        seen: set[str] = set()
        for spec in v:
            if spec.username in seen:
                raise ValueError(f"duplicate user {spec.username!r}")
            seen.add(spec.username)
        return v

    @property
    def managed_domains(self) -> list[str]:
        """Domains the document declares, in reconciliation order."""
        domains = []
        if self.packages is not None:
            domains.append("packages")
        if self.users is not None:
            domains.append("users")
        return domains
