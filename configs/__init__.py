"""
Configuration package for the commerce catalog converter.

Usage:
    from configs import get_settings

    settings = get_settings(INPUT_DIRECTORY="./Data")
    batch_size = settings.BATCH_SIZE
"""

from .settings import Settings, get_settings, create_test_settings

__all__ = [
    "Settings",
    "get_settings",
    "create_test_settings"
]
