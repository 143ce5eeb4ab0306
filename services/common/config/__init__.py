"""Configuration system for voice-helpdesk services.

This module provides:
- Environment-driven configuration sections
- Type-safe field definitions
- Validation framework
"""

from .base import (
    BaseConfig,
    ConfigError,
    FieldDefinition,
    LoggingConfig,
    RequiredFieldError,
    ValidationError,
    create_field_definition,
)
from .loader import load_config_from_env
from .validator import validate_phrases, validate_snowflake, validate_url


__all__ = [
    # Base classes
    "BaseConfig",
    "ConfigError",
    "ValidationError",
    "RequiredFieldError",
    "FieldDefinition",
    # Core configurations
    "LoggingConfig",
    # Utilities
    "load_config_from_env",
    # Validators
    "validate_url",
    "validate_snowflake",
    "validate_phrases",
    # Field definition utilities
    "create_field_definition",
]
