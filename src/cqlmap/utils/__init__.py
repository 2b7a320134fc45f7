"""
Utility modules for cqlmap.

This module contains utility classes and functions including
exceptions, configuration and logging setup.
"""

from .logging import setup_logging, get_logger
from .config import MappingConfig, load_config

__all__ = [
    'setup_logging', 'get_logger', 'MappingConfig', 'load_config'
]
