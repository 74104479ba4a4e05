"""Shared configuration for the layer build tooling."""

from common.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
