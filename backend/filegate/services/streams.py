from collections.abc import AsyncIterable, AsyncIterator


class PreviewTee:
    """Forward-only reader that serves a bounded preview and then the full body.

    The source is read exactly once: chunks pulled for the preview are kept
    and replayed at the head of :meth:`stream`, so the bytes validated and the
    bytes stored can never diverge.
    """

    def __init__(self, source: AsyncIterable[bytes], preview_size: int) -> None:
        if preview_size <= 0:
            raise ValueError("preview_size must be positive")
        self._source = source.__aiter__()
        self._preview_size = preview_size
        self._buffered: list[bytes] = []
        self._exhausted = False
        self._streamed = False
        self._preview: bytes | None = None

    @property
    def preview(self) -> bytes:
        if self._preview is None:
            raise RuntimeError("read_preview() has not been awaited")
        return self._preview

    async def read_preview(self) -> bytes:
        if self._preview is not None:
            return self._preview
        if self._streamed:
            raise RuntimeError("Stream already consumed")

        collected = 0
        while collected < self._preview_size:
            try:
                chunk = await self._source.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                break
            if not chunk:
                continue
            self._buffered.append(chunk)
            collected += len(chunk)

        self._preview = b"".join(self._buffered)[: self._preview_size]
        return self._preview

    async def stream(self) -> AsyncIterator[bytes]:
        if self._streamed:
            raise RuntimeError("Stream already consumed")
        self._streamed = True

        buffered, self._buffered = self._buffered, []
        for chunk in buffered:
            yield chunk
        if self._exhausted:
            return
        async for chunk in self._source:
            if chunk:
                yield chunk

