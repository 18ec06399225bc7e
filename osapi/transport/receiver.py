"""
Stream Receiver: the caller-facing end of a streaming read.

pull_object() hands one back immediately. The transport writes body
chunks into it as they arrive; the caller drains it with `async for`.

    receiver = conn.pull_object("video.mp4")
    async for chunk in receiver:
        out.write(chunk)
    meta = await receiver.meta

A failed read raises the operation error from iteration, and the same
error settles receiver.completion.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, NoReturn, Optional, Union

from osapi.core.types import ResponseMetadata, Result

_EOF = object()


class StreamReceiver:
    """
    Unbounded chunk buffer between the transport and the caller.

    Producer side: set_meta(), write(), finish().
    Consumer side: async iteration, read(), meta, completion.
    """

    __slots__ = (
        "_queue",
        "_meta",
        "_completion",
        "_error",
        "_exhausted",
        "_bytes_received",
    )

    def __init__(self, completion: asyncio.Future[Result[Optional[ResponseMetadata], Any]]) -> None:
        self._queue: asyncio.Queue[Union[bytes, object]] = asyncio.Queue()
        self._meta: asyncio.Future[Optional[ResponseMetadata]] = (
            asyncio.get_running_loop().create_future()
        )
        self._completion = completion
        self._error: Optional[BaseException] = None
        self._exhausted = False
        self._bytes_received = 0

    # -------------------------------------------------------------------------
    # Producer side
    # -------------------------------------------------------------------------
    def set_meta(self, meta: ResponseMetadata) -> None:
        if not self._meta.done():
            self._meta.set_result(meta)

    async def write(self, chunk: bytes) -> None:
        self._bytes_received += len(chunk)
        await self._queue.put(chunk)

    def finish(self, error: Optional[BaseException] = None) -> None:
        """End of body. With an error, iteration raises it after buffered chunks."""
        self._error = error
        if not self._meta.done():
            self._meta.set_result(None)
        self._queue.put_nowait(_EOF)

    # -------------------------------------------------------------------------
    # Consumer side
    # -------------------------------------------------------------------------
    @property
    def meta(self) -> asyncio.Future[Optional[ResponseMetadata]]:
        """Resolves to the response metadata, or None if the read failed first."""
        return self._meta

    @property
    def completion(self) -> asyncio.Future[Result[Optional[ResponseMetadata], Any]]:
        """The operation future; resolves to the same Result the callback gets."""
        return self._completion

    @property
    def bytes_received(self) -> int:
        return self._bytes_received

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self

    async def __anext__(self) -> bytes:
        if self._exhausted:
            self._end()
        item = await self._queue.get()
        if item is _EOF:
            self._exhausted = True
            self._end()
        return item  # type: ignore[return-value]

    def _end(self) -> NoReturn:
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration

    async def read(self) -> bytes:
        """Drain everything into one buffer."""
        return b"".join([chunk async for chunk in self])

    def __repr__(self) -> str:
        return (
            f"StreamReceiver(bytes_received={self._bytes_received}, "
            f"done={self._exhausted})"
        )
