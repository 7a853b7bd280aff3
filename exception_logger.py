"""
Exception Logger for SheetAssist

Central place where the router, entry stores, generator and HTTP server
record failures. Entries carry a timestamp, the reporting module and, for
exceptions, the full stack trace.

Features:
- Thread-safe appends (the HTTP server handles requests concurrently)
- Console output when no log file is configured
- Log file taken from SHEETASSIST_ERROR_LOG at import time

Author: Quinn Evans
"""

import os
import threading
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional


class ExceptionLogger:
    """
    Centralized exception logging for SheetAssist.

    Attributes:
        log_file (str): Path to the error log, or None for console output
        lock (threading.Lock): Serializes file appends
    """

    def __init__(self, log_file_path: Optional[str] = None):
        self.log_file = None
        self.lock = threading.Lock()
        if log_file_path:
            self.set_log_file(log_file_path)

    def set_log_file(self, log_file_path: Optional[str]):
        """
        Set the error log path, creating its directory. None reverts to console.
        """
        self.log_file = log_file_path
        if log_file_path:
            Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    def log_exception(self, exception: BaseException, module: str = "unknown",
                      context: Optional[str] = None):
        """
        Log an exception with its stack trace.

        Args:
            exception (BaseException): The exception that occurred
            module (str): Reporting module, e.g. "router" or "entry_store"
            context (str, optional): What was being attempted
        """
        if not self.log_file:
            line = f"Exception in {module}: {exception}"
            if context:
                line += f" | Context: {context}"
            print(line)
            return

        log_entry = f"\n[{self._timestamp()}] [{module.upper()}] {exception}\n"
        if context:
            log_entry += f"Context: {context}\n"
        log_entry += "Stack Trace:\n"
        log_entry += "".join(traceback.format_exception(
            type(exception), exception, exception.__traceback__
        ))
        log_entry += "\n" + "=" * 80 + "\n"
        self._append(log_entry)

    def log_error(self, error_message: str, module: str = "unknown",
                  context: Optional[str] = None):
        """Log an error message that has no exception object."""
        if not self.log_file:
            line = f"Error in {module}: {error_message}"
            if context:
                line += f" | Context: {context}"
            print(line)
            return

        log_entry = f"[{self._timestamp()}] [{module.upper()}] {error_message}"
        if context:
            log_entry += f" | Context: {context}"
        self._append(log_entry + "\n")

    def _timestamp(self) -> str:
        return datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def _append(self, log_entry: str):
        with self.lock:
            try:
                with open(self.log_file, "a", encoding="utf-8") as f:
                    f.write(log_entry)
            except OSError as write_error:
                print(f"Failed to write to error log: {write_error}")
                print(f"Original error: {log_entry}")


# Global exception logger instance
exception_logger = ExceptionLogger(os.getenv("SHEETASSIST_ERROR_LOG"))


def log_exception(exc: BaseException, module: str = "unknown", context: Optional[str] = None):
    exception_logger.log_exception(exc, module, context)


def log_error(message: str, module: str = "unknown", context: Optional[str] = None):
    exception_logger.log_error(message, module, context)
