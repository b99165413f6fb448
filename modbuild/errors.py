"""Error types raised by modbuild components."""

from __future__ import annotations


class ModBuildError(RuntimeError):
    """A failure carrying a human readable description and its underlying cause."""

    def __init__(self, description: str, cause: BaseException | None = None) -> None:
        super().__init__(description)
        self.description = description
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.description} caused by: {self.cause}"
        return self.description


class ConfigurationError(ModBuildError):
    """Raised when the configuration or a scan root is unusable."""


class BuildFailedError(ModBuildError):
    """Raised when the build tool ran but exited with a non-zero status."""

    def __init__(self, description: str, returncode: int) -> None:
        super().__init__(description)
        self.returncode = returncode


__all__ = ["BuildFailedError", "ConfigurationError", "ModBuildError"]
