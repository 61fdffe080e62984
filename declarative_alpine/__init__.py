"""declarative-alpine — converge an Alpine host toward a declared state."""

__version__ = "0.1.0"
