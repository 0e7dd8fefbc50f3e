"""
Logging Configuration
=====================

Responsibility:
- Root logger level from the ``logging`` config section.
- Coloured console output (colorama) and a rotating UTF-8 log file.
"""

from .logging_config import LoggingConfigurator, ColoredFormatter

__all__ = ['LoggingConfigurator', 'ColoredFormatter']
