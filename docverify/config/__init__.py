"""Configuration package: environment settings and logging setup."""

from docverify.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
