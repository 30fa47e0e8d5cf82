"""Toolchain detection, builds and flashing for STM32 projects."""

__version__ = "0.1.0"
