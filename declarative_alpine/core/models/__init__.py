"""
Domain models — Pydantic types for desired and observed state.

All models are re-exported here for convenient access:

    from declarative_alpine.core.models import DesiredState, UserSpec, UsersDiff
"""

from declarative_alpine.core.models.action import Receipt
from declarative_alpine.core.models.desired import DesiredState, SystemConfig, UserSpec
from declarative_alpine.core.models.state import PackagesDiff, UserRecord, UsersDiff

__all__ = [
    "DesiredState",
    "PackagesDiff",
    "Receipt",
    "SystemConfig",
    "UserRecord",
    "UserSpec",
    "UsersDiff",
]
