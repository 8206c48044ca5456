# src/neurodrill/exceptions.py
from __future__ import annotations

class NeurodrillError(Exception):
    """Base for all domain errors."""

class ConfigurationError(NeurodrillError):
    """Invalid configuration, or input table lacks required columns."""

class NotFoundError(NeurodrillError):
    """Domain name not present in the registry."""

class DataNotFound(NeurodrillError):
    """Required file(s) or directory not found."""

class ValidationError(NeurodrillError):
    """Input arguments fail semantic checks."""

class VisualizationError(NeurodrillError):
    """Plotting/figure export failed."""
