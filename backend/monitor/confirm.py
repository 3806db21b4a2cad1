"""Yes/no gates shown before destructive actions."""

import asyncio
import inspect
from typing import Awaitable, Callable, Union

Confirmer = Callable[[str], Union[bool, Awaitable[bool]]]


def auto_confirm(message: str) -> bool:
    """Non-interactive gate: always yes."""
    return True


def deny(message: str) -> bool:
    return False


async def prompt_confirm(message: str) -> bool:
    """Ask on the terminal without blocking the event loop."""
    answer = await asyncio.to_thread(input, f"{message} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


async def ask(confirm: Confirmer, message: str) -> bool:
    """Run a sync or async confirmer."""
    result = confirm(message)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)
