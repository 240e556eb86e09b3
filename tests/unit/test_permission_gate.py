"""Unit tests for the microphone permission gates."""

import asyncio
import io
import threading
import time
from unittest.mock import patch

import pytest
from rich.console import Console

from voicerecorder.permissions.gate import (
    PROMPT_MESSAGE,
    ConsolePermissionGate,
    PermissionResult,
    StaticPermissionGate,
)


@pytest.fixture
def console():
    return Console(file=io.StringIO(), force_terminal=False, width=100)


@pytest.mark.unit
class TestConsolePermissionGate:

    def test_prompt_text(self, console):
        gate = ConsolePermissionGate(console)

        with patch('voicerecorder.permissions.gate.Confirm.ask', return_value=True):
            asyncio.run(gate.request())

        output = console.file.getvalue()
        assert "Microphone Access" in output
        assert PROMPT_MESSAGE in output

    def test_grant_is_remembered(self, console):
        gate = ConsolePermissionGate(console)

        with patch('voicerecorder.permissions.gate.Confirm.ask', return_value=True) as ask:
            first = asyncio.run(gate.request())
            second = asyncio.run(gate.request())

        assert first is PermissionResult.GRANTED
        assert second is PermissionResult.GRANTED
        ask.assert_called_once()

    def test_denial_asks_again_next_time(self, console):
        gate = ConsolePermissionGate(console)

        with patch('voicerecorder.permissions.gate.Confirm.ask', side_effect=[False, True]) as ask:
            first = asyncio.run(gate.request())
            second = asyncio.run(gate.request())

        assert first is PermissionResult.DENIED
        assert second is PermissionResult.GRANTED
        assert ask.call_count == 2

    def test_prompt_error_propagates(self, console):
        gate = ConsolePermissionGate(console)

        with patch('voicerecorder.permissions.gate.Confirm.ask', side_effect=EOFError()):
            with pytest.raises(EOFError):
                asyncio.run(gate.request())

    def test_cancelled_prompt_does_not_block_shutdown(self, console):
        """Ctrl+C during the prompt returns without waiting for the user to answer."""
        gate = ConsolePermissionGate(console)
        answered = threading.Event()

        def unanswered_prompt(*args, **kwargs):
            answered.wait(5)
            return True

        async def scenario():
            request = asyncio.ensure_future(gate.request())
            await asyncio.sleep(0.05)
            request.cancel()
            with pytest.raises(asyncio.CancelledError):
                await request

        with patch('voicerecorder.permissions.gate.Confirm.ask', side_effect=unanswered_prompt):
            started = time.monotonic()
            try:
                asyncio.run(scenario())
                elapsed = time.monotonic() - started
            finally:
                answered.set()

        assert elapsed < 2


@pytest.mark.unit
class TestStaticPermissionGate:

    @pytest.mark.parametrize("granted,result", [(True, PermissionResult.GRANTED),
                                                (False, PermissionResult.DENIED)])
    def test_configured_answer(self, granted, result):
        assert asyncio.run(StaticPermissionGate(granted).request()) is result
