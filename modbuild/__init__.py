"""Affected-module build selection for Gradle multi-module repositories."""

__version__ = "0.1.0"
