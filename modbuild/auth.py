"""Credentials for the code review server."""

from __future__ import annotations

import getpass
from dataclasses import dataclass, replace
from typing import Callable, Optional


@dataclass(frozen=True)
class Auth:
    user: str
    password: Optional[str] = None

    def ask_password_if_none(
        self, prompt: Callable[[str], str] = getpass.getpass
    ) -> "Auth":
        """Return credentials with a password, prompting on the terminal when missing."""
        if self.password is not None:
            return self
        try:
            password = prompt("Password: ")
        except EOFError:
            password = None
        return replace(self, password=password)

    def as_tuple(self) -> tuple[str, str]:
        return (self.user, self.password or "")


__all__ = ["Auth"]
