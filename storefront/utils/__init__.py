"""
Utility modules.

Common helpers for logging and configuration loading.
"""

from storefront.utils.config_loader import AppConfig, get_admin_password, load_config, load_env
from storefront.utils.logging_config import setup_logging

__all__ = [
    "load_config",
    "load_env",
    "AppConfig",
    "get_admin_password",
    "setup_logging",
]
