"""
In-memory sink for the protected handler's response.

The handler's status, headers and body are captured here instead of being
sent to the client, so the middleware can still answer with an error if
settlement fails afterwards.
"""

from typing import Iterable, List, Mapping, Optional, Tuple, Union

from starlette.responses import Response

RawHeaders = List[Tuple[bytes, bytes]]


class ResponseBuffer:
    """Captured status code, headers and body of a downstream response."""

    def __init__(self) -> None:
        self.status_code: Optional[int] = None
        self.raw_headers: RawHeaders = []
        self._chunks: List[bytes] = []

    @property
    def started(self) -> bool:
        return self.status_code is not None

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    def write_status(
        self, status_code: int, raw_headers: Iterable[Tuple[bytes, bytes]] = ()
    ) -> None:
        """Record the status line. Only the first call has any effect."""
        if self.started:
            return
        self.status_code = status_code
        self.raw_headers = list(raw_headers)

    def write(self, chunk: Union[bytes, str]) -> int:
        """Append body bytes, implicitly starting a 200 response."""
        if not self.started:
            self.write_status(200)
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._chunks.append(chunk)
        return len(chunk)

    async def capture(self, response: Response) -> "ResponseBuffer":
        """Drain a downstream response (as returned by ``call_next``).

        Nothing is transmitted to the client.
        """
        self.write_status(response.status_code, response.raw_headers)
        body_iterator = getattr(response, "body_iterator", None)
        if body_iterator is None:
            self.write(response.body)
        else:
            async for chunk in body_iterator:
                self.write(chunk)
        return self

    def flush(self, headers: Optional[Mapping[str, str]] = None) -> Response:
        """Build the real response from the buffered data.

        Args:
            headers: Extra headers to set on the released response

        Returns:
            Response carrying the buffered status code and body verbatim
        """
        body = self.body
        response = Response(content=body, status_code=self.status_code or 200)
        response.raw_headers = [
            (name, value)
            for name, value in self.raw_headers
            if name.lower() != b"content-length"
        ]
        response.raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))
        for name, value in (headers or {}).items():
            response.headers[name] = value
        return response
