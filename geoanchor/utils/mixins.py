"""Utility mixin classes"""

__all__ = ['LoggingMixin']

import logging
from typing import Optional


class LoggingMixin:  # pylint: disable=too-few-public-methods
    """Mixin class for logging"""
    logger: logging.Logger

    def __init__(self, logstr: Optional[str] = None):
        _class = self.__class__
        module_name = _class.__module__
        classname = _class.__name__
        if logstr:
            classname += f'.{logstr}'

        logstr = f"{classname}" if module_name == "builtins" else f"{module_name}.{classname}"

        self.logger = logging.getLogger(logstr)
