"""Structured errors for stm32-dev."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    TOOLCHAIN_NOT_FOUND = "TOOLCHAIN_NOT_FOUND"
    BUILD_FAILED = "BUILD_FAILED"
    FLASH_FAILED = "FLASH_FAILED"
    DEVICE_NOT_CONNECTED = "DEVICE_NOT_CONNECTED"
    OPENOCD_ERROR = "OPENOCD_ERROR"
    GDB_ERROR = "GDB_ERROR"
    INVALID_PROJECT = "INVALID_PROJECT"
    SVD_DOWNLOAD_FAILED = "SVD_DOWNLOAD_FAILED"
    CMAKE_ERROR = "CMAKE_ERROR"


class Stm32Error(Exception):
    """Operation failure with a machine-readable kind and optional details."""

    def __init__(self, kind: ErrorKind, message: str, details=None, exit_code: int = 1):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details
        self.exit_code = exit_code

    def to_dict(self) -> dict:
        data = {"error": self.message, "kind": self.kind.value, "exit_code": self.exit_code}
        if self.details is not None:
            data["details"] = self.details
        return data
