"""Asynchronous encoding of file payloads for upload requests."""

import asyncio
import base64
import binascii
from pathlib import Path
from typing import Any


class FileEncodingError(Exception):
    """Raised when a file payload cannot be read or encoded."""

    pass


async def encode_file_data(file_data: Any) -> str:
    """Convert a file payload into a base64 string.

    Args:
        file_data: Raw bytes, a Path to read, a ``data:`` URL, or a string
            that is already base64-encoded.

    Returns:
        The base64-encoded content without any data URL prefix.

    Raises:
        FileEncodingError: If the payload cannot be read or is not encodable.
    """
    if isinstance(file_data, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(file_data)).decode("ascii")

    if isinstance(file_data, Path):
        try:
            content = await asyncio.to_thread(file_data.read_bytes)
        except OSError as exc:
            raise FileEncodingError(f"Cannot read file {file_data}: {exc}") from exc
        return base64.b64encode(content).decode("ascii")

    if isinstance(file_data, str):
        if file_data.startswith("data:"):
            _, sep, encoded = file_data.partition(",")
            if not sep:
                raise FileEncodingError("Malformed data URL")
            payload = encoded
        else:
            payload = file_data
        try:
            base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise FileEncodingError(f"File data is not valid base64: {exc}") from exc
        return payload

    raise FileEncodingError(f"Unsupported file data type: {type(file_data).__name__}")
