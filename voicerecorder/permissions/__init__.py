"""Microphone permission handling."""

from .gate import (
    ConsolePermissionGate,
    PermissionGate,
    PermissionResult,
    StaticPermissionGate,
)

__all__ = [
    "PermissionGate",
    "PermissionResult",
    "StaticPermissionGate",
    "ConsolePermissionGate",
]
