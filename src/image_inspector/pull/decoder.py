"""Decoder for the newline-delimited JSON stream of an image pull."""

import codecs
import json
from dataclasses import dataclass
from typing import Any

from ..exceptions import PullDecodeError

DOWNLOADING_STATUS = "Downloading"


@dataclass
class PullMessage:
    """One progress/status message of a pull stream."""

    status: str = ""
    id: str = ""
    current: int = 0
    total: int = 0
    error: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "PullMessage":
        """Build a message from a decoded JSON object.

        Field names are matched case-insensitively, the same way the
        daemon's own clients read them.
        """
        if not isinstance(data, dict):
            raise PullDecodeError(f"Unexpected pull message: {data!r}")
        fields = {key.lower(): value for key, value in data.items()}
        detail = fields.get("progressdetail") or {}
        if not isinstance(detail, dict):
            detail = {}
        detail = {key.lower(): value for key, value in detail.items()}

        error = fields.get("error") or ""
        if not error:
            error_detail = fields.get("errordetail") or {}
            if isinstance(error_detail, dict):
                error = error_detail.get("message") or ""

        try:
            return cls(
                status=str(fields.get("status") or ""),
                id=str(fields.get("id") or ""),
                current=int(detail.get("current") or 0),
                total=int(detail.get("total") or 0),
                error=str(error),
            )
        except (TypeError, ValueError) as e:
            raise PullDecodeError(f"Invalid progress detail in {data!r}: {e}") from e

    @property
    def is_downloading(self) -> bool:
        return self.status == DOWNLOADING_STATUS


class PullMessageDecoder:
    """Incremental decoder tolerant of arbitrary chunk boundaries.

    Complete lines are decoded as soon as they arrive; a partial line is kept
    until the next chunk or until ``close()``.
    """

    def __init__(self) -> None:
        self._text = codecs.getincrementaldecoder("utf-8")()
        self._json = json.JSONDecoder()
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[PullMessage]:
        """Decode every complete message contained in ``chunk``.

        Raises:
            PullDecodeError: If a complete line is not valid JSON
        """
        try:
            self._buffer += self._text.decode(chunk)
        except UnicodeDecodeError as e:
            raise PullDecodeError(f"Error decoding json: {e}") from e

        *lines, self._buffer = self._buffer.split("\n")
        messages = []
        for line in lines:
            messages.extend(self._decode_line(line))
        return messages

    def close(self) -> list[PullMessage]:
        """Decode whatever is left at end-of-stream.

        Raises:
            PullDecodeError: If the stream ended inside a message
        """
        try:
            self._buffer += self._text.decode(b"", final=True)
        except UnicodeDecodeError as e:
            raise PullDecodeError(f"Error decoding json: {e}") from e
        rest, self._buffer = self._buffer, ""
        return self._decode_line(rest)

    def _decode_line(self, line: str) -> list[PullMessage]:
        messages = []
        pos = 0
        line = line.strip()
        while pos < len(line):
            try:
                obj, end = self._json.raw_decode(line, pos)
            except json.JSONDecodeError as e:
                raise PullDecodeError(f"Error decoding json: {e}") from e
            messages.append(PullMessage.from_dict(obj))
            pos = end
            while pos < len(line) and line[pos].isspace():
                pos += 1
        return messages
