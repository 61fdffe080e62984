"""
Mock runner — test double for every external command.

Used in tests (and anywhere a real package manager or root is not
available) to simulate command outcomes. Responses are configured per
program name, i.e. argv[0].
"""

from __future__ import annotations

from declarative_alpine.adapters.base import CommandRunner, display_argv
from declarative_alpine.core.models.action import Receipt


class MockCommandRunner(CommandRunner):
    """Universal mock runner for testing.

    By default, returns success for everything. Can be configured
    with custom responses per program.
    """

    def __init__(
        self,
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self._call_log: list[list[str]] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def call_log(self) -> list[list[str]]:
        """Every argv this mock has received, unmasked."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times run has been called."""
        return len(self._call_log)

    def calls_to(self, program: str) -> list[list[str]]:
        """The recorded argvs whose program is ``program``."""
        return [argv for argv in self._call_log if argv and argv[0] == program]

    def is_available(self, program: str) -> bool:
        return self._available

    def set_output(self, program: str, output: str) -> None:
        """Make ``program`` succeed with the given stdout."""
        self._responses[program] = Receipt.success(
            runner=self.name,
            command=[program],
            output=output,
            return_code=0,
        )

    def set_failure(self, program: str, error: str = "Mock failure", return_code: int = 1) -> None:
        """Configure a specific program to fail."""
        self._responses[program] = Receipt.failure(
            runner=self.name,
            command=[program],
            error=error,
            return_code=return_code,
        )

    def run(self, argv: list[str], *, sensitive: bool = False) -> Receipt:
        self._call_log.append(list(argv))
        shown = display_argv(argv, sensitive)

        program = argv[0] if argv else ""
        if program in self._responses:
            return self._responses[program].model_copy(update={"command": shown})

        return Receipt.success(
            runner=self.name,
            command=shown,
            output=self._default_output,
            return_code=0,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call log and custom responses."""
        self._call_log.clear()
        self._responses.clear()
