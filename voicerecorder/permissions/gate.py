"""Microphone permission gates."""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from threading import Thread
from typing import Optional

from rich.console import Console
from rich.prompt import Confirm

logger = logging.getLogger(__name__)

PROMPT_TITLE = "Microphone Access"
PROMPT_MESSAGE = "This app needs access to your microphone to record audio."


class PermissionResult(Enum):
    GRANTED = "granted"
    DENIED = "denied"


class PermissionGate(ABC):
    """Asks for consent to use the microphone."""

    @abstractmethod
    async def request(self) -> PermissionResult:
        """Request microphone access. Resolves immediately once granted."""


class StaticPermissionGate(PermissionGate):
    """Answers from configuration instead of asking (headless and --yes runs)."""

    def __init__(self, granted: bool = True):
        self.granted = granted

    async def request(self) -> PermissionResult:
        result = PermissionResult.GRANTED if self.granted else PermissionResult.DENIED
        logger.info(f"Microphone permission from configuration: {result.value}")
        return result


class ConsolePermissionGate(PermissionGate):
    """Prompts on the terminal and remembers a grant for the rest of the process."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize console permission gate.

        Args:
            console: Rich console to prompt on (default: a new stdout console)
        """
        self.console = console or Console()
        self._granted = False

    def _ask(self) -> bool:
        self.console.print(f"[bold]{PROMPT_TITLE}[/bold]")
        self.console.print(PROMPT_MESSAGE)
        return Confirm.ask("Allow", console=self.console, default=True)

    def _prompt(self, loop: asyncio.AbstractEventLoop, answer: asyncio.Future) -> None:
        try:
            allowed = self._ask()
        except Exception as e:
            self._deliver(loop, answer, None, e)
        else:
            self._deliver(loop, answer, allowed, None)

    @staticmethod
    def _deliver(loop, answer, allowed, error) -> None:
        def resolve():
            if answer.done():
                return
            if error is not None:
                answer.set_exception(error)
            else:
                answer.set_result(allowed)

        try:
            loop.call_soon_threadsafe(resolve)
        except RuntimeError:
            logger.debug("Event loop closed before the permission answer arrived")

    async def request(self) -> PermissionResult:
        if self._granted:
            return PermissionResult.GRANTED

        # The prompt blocks on stdin; a cancelled request must not hold up loop shutdown
        loop = asyncio.get_running_loop()
        answer = loop.create_future()
        prompt_thread = Thread(target=self._prompt, args=(loop, answer), daemon=True)
        prompt_thread.name = "PermissionPromptThread"
        prompt_thread.start()
        allowed = await answer

        if allowed:
            self._granted = True
            logger.info("Microphone permission granted")
            return PermissionResult.GRANTED

        logger.info("Microphone permission denied")
        return PermissionResult.DENIED
