"""Terminal presentation layer."""

from .console import ConsoleRenderer, describe_outcome, render_notification

__all__ = [
    "ConsoleRenderer",
    "describe_outcome",
    "render_notification",
]
