from __future__ import annotations


class MissionServiceError(Exception):
    """Base exception for all mission-service errors."""


class ConfigError(MissionServiceError):
    """Invalid config.yaml contents (unknown tier, non-positive cost, ...)."""


class CatalogConfigError(MissionServiceError):
    """Catalog mission mapped to an energy mission type missing from the cost table."""
