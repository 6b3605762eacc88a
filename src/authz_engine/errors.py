from __future__ import annotations


class AppError(Exception):
    """Base error for expected failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PolicyConfigError(AppError):
    """Raised while building an engine from a policy that references undeclared statements."""

    def __init__(self, message: str = "invalid policy configuration", *, problems: list[str] | None = None):
        super().__init__(message)
        self.problems = list(problems or [])
