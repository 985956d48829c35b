"""
Core module for configuration, domain services and shared utilities.

Services are not imported at package level to avoid circular imports with
cbt.models (which imports the settings from here). Import them directly:
from cbt.core.activation import ActivationGate
"""
from .config import settings

__all__ = ["settings"]
