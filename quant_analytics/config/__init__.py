"""
Configuration module for the analytics engine.

Provides centralized configuration management using Pydantic settings
and YAML-based override files.
"""

from .settings import AnalyticsSettings, get_settings, load_yaml_config

__all__ = ["AnalyticsSettings", "get_settings", "load_yaml_config"]
