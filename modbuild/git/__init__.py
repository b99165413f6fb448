"""Version control helpers for modbuild."""
