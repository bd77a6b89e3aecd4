# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import asyncio
import logging

from typing import AsyncIterator, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RunCancelled(Exception):
    """Raised inside the agent loop once the run's token has been cancelled."""


class CancellationToken:
    """Run-scoped, one-shot cancellation signal."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Run aborted") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RunCancelled(self.reason)


async def iterate_with_cancellation(
    stream: AsyncIterator[T], token: CancellationToken
) -> AsyncIterator[T]:
    """
    Yield from an async iterator until it ends or the token is cancelled.

    Each read is raced against the token, so a stalled provider stream does
    not delay the abort. The source iterator is closed on every exit path.
    """
    iterator = stream.__aiter__()
    waiter = asyncio.ensure_future(token.wait())
    next_item: Optional[asyncio.Future] = None
    try:
        while True:
            if token.cancelled:
                raise RunCancelled(token.reason)
            next_item = asyncio.ensure_future(iterator.__anext__())
            done, _ = await asyncio.wait({next_item, waiter}, return_when=asyncio.FIRST_COMPLETED)
            if next_item not in done:
                raise RunCancelled(token.reason)
            try:
                item = next_item.result()
            except StopAsyncIteration:
                return
            next_item = None
            yield item
    finally:
        waiter.cancel()
        if next_item is not None and not next_item.done():
            next_item.cancel()
            try:
                await next_item
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Provider stream raised while being cancelled: {e}")
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except RuntimeError as e:
                logger.debug(f"Could not close provider stream: {e}")
