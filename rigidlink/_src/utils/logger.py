# SPDX-FileCopyrightText: Copyright (c) 2025 The RigidLink Developers
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Colourised message logging for the client and the reference engine."""

import logging
from enum import IntEnum
from typing import ClassVar


class LogLevel(IntEnum):
    """Enumeration for log levels."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    NOTIF = logging.INFO + 5
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


class Logger(logging.Formatter):
    """Formatter that prefixes records with the package header and colours them by level."""

    LOGGER_NAME = "rigidlink"

    HEADER = "[RIGIDLINK]"
    HEADERCOL = "\x1b[38;5;39m"

    WHITE = "\x1b[37m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    BLUE = "\x1b[34;20m"
    GREEN = "\x1b[32;20m"
    YELLOW = "\x1b[33;20m"
    RESET = "\x1b[0m"

    LINE_FORMAT = "[%(asctime)s][%(filename)s:%(lineno)d][%(levelname)s]: %(message)s"
    """Line format for the log messages, including timestamp, filename, line number, log level, and message."""

    COLORS: ClassVar[dict[int, str]] = {
        LogLevel.DEBUG: BLUE,
        LogLevel.INFO: WHITE,
        LogLevel.NOTIF: GREEN,
        LogLevel.WARNING: YELLOW,
        LogLevel.ERROR: RED,
        LogLevel.CRITICAL: BOLD_RED,
    }
    """Dictionary mapping log levels to their respective colours."""

    def __init__(self):
        super().__init__()

        self._streamhandler = logging.StreamHandler()
        self._streamhandler.setFormatter(self)

        logging.addLevelName(LogLevel.NOTIF, "NOTIF")

        # Attach to a package logger rather than the root logger so that host
        # applications keep control over their own logging configuration.
        logger = self.get()
        logger.addHandler(self._streamhandler)
        logger.setLevel(LogLevel.NOTIF)
        logger.propagate = False

    def format(self, record):
        """Format the log record with the appropriate color based on the log level."""
        color = self.COLORS.get(record.levelno, self.WHITE)
        formatter = logging.Formatter(self.HEADERCOL + self.HEADER + self.RESET + color + self.LINE_FORMAT + self.RESET)
        return formatter.format(record)

    def get(self) -> logging.Logger:
        """Get the package logger instance."""
        return logging.getLogger(self.LOGGER_NAME)


###
# Globals
###


LOGGER: Logger | None = None
"""Global logger instance for the package."""


###
# Configurations
###


def get_default_logger() -> logging.Logger:
    """Initialize the global logger instance."""
    global LOGGER  # noqa: PLW0603
    if LOGGER is None:
        LOGGER = Logger()
    return LOGGER.get()


def set_log_level(level: LogLevel):
    """Set the logging level for the default logger."""
    get_default_logger().setLevel(level)
    get_default_logger().debug(f"Log level set to: {logging.getLevelName(level)}")


def reset_log_level():
    """Reset the logging level for the default logger to NOTIF."""
    get_default_logger().setLevel(LogLevel.NOTIF)
    get_default_logger().debug(f"Log level reset to: {logging.getLevelName(LogLevel.NOTIF)}")


def set_log_header(header: str):
    """Set the header for the logger."""
    Logger.HEADER = header


###
# Logging
###


def debug(msg: str, *args, **kwargs):
    """Log a debug message."""
    get_default_logger().debug(msg, *args, **kwargs, stacklevel=2)


def info(msg: str, *args, **kwargs):
    """Log an info message."""
    get_default_logger().info(msg, *args, **kwargs, stacklevel=2)


def notif(msg: str, *args, **kwargs):
    """Log a notification message."""
    get_default_logger().log(LogLevel.NOTIF, msg, *args, **kwargs, stacklevel=2)


def warning(msg: str, *args, **kwargs):
    """Log a warning message."""
    get_default_logger().warning(msg, *args, **kwargs, stacklevel=2)


def error(msg: str, *args, **kwargs):
    """Log an error message."""
    get_default_logger().error(msg, *args, **kwargs, stacklevel=2)


def critical(msg: str, *args, **kwargs):
    """Log a critical message."""
    get_default_logger().critical(msg, *args, **kwargs, stacklevel=2)
