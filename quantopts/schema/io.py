"""
Loading and saving QuantizationOptions files.

Formats:
- json:   protobuf JSON mapping (.json)
- text:   protobuf text format (.pbtxt, .textproto, .txtpb, .prototxt)
- binary: protobuf wire format (.pb, .binpb, .bin)

Files with other extensions use QUANTOPTS_DEFAULT_FORMAT.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from quantopts.errors import OptionsDecodeError
from quantopts.schema.spec import QuantizationOptions
from quantopts.schema.wire import (
    decode_options,
    encode_options,
    from_text_format,
    to_text_format,
)
from quantopts.settings import VALID_FORMATS, get_settings

logger = logging.getLogger(__name__)

FORMAT_EXTENSIONS = {
    ".json": "json",
    ".pbtxt": "text",
    ".textproto": "text",
    ".txtpb": "text",
    ".prototxt": "text",
    ".pb": "binary",
    ".binpb": "binary",
    ".bin": "binary",
}


def _check_format(fmt: str) -> str:
    fmt = fmt.lower()
    if fmt not in VALID_FORMATS:
        raise ValueError(f"Unknown format: {fmt!r} (expected one of {', '.join(VALID_FORMATS)})")
    return fmt


def detect_format(path: Union[str, Path]) -> str:
    """Pick a format from the file extension."""
    fmt = FORMAT_EXTENSIONS.get(Path(path).suffix.lower())
    if fmt is None:
        fmt = get_settings().default_format
        logger.debug(f"No format known for '{path}', using default '{fmt}'")
    return fmt


def loads_options(data: Union[str, bytes], fmt: str) -> QuantizationOptions:
    """Decode options from an in-memory payload."""
    fmt = _check_format(fmt)
    if fmt == "binary":
        if isinstance(data, str):
            raise TypeError("Binary payloads must be bytes")
        return decode_options(data)
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise OptionsDecodeError(f"{fmt} payload is not valid UTF-8: {e}") from e
    if fmt == "json":
        return QuantizationOptions.from_json(data)
    return from_text_format(data)


def dumps_options(options: QuantizationOptions, fmt: str) -> Union[str, bytes]:
    """Encode options to an in-memory payload (bytes for binary, str otherwise)."""
    fmt = _check_format(fmt)
    if fmt == "binary":
        return encode_options(options)
    if fmt == "json":
        return options.to_json() + "\n"
    return to_text_format(options)


def load_options(path: Union[str, Path], fmt: Optional[str] = None) -> QuantizationOptions:
    """
    Load options from a file.

    Args:
        path: File to read
        fmt: Format override; detected from the extension when None

    Returns:
        Decoded options with defaults applied
    """
    path = Path(path)
    fmt = _check_format(fmt) if fmt else detect_format(path)
    logger.info(f"Loading quantization options from {path} ({fmt})")
    data = path.read_bytes()
    return loads_options(data, fmt)


def save_options(
    options: QuantizationOptions,
    path: Union[str, Path],
    fmt: Optional[str] = None,
) -> Path:
    """Write options to a file and return its path."""
    path = Path(path)
    fmt = _check_format(fmt) if fmt else detect_format(path)
    payload = dumps_options(options, fmt)
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)
    logger.info(f"Saved quantization options to {path} ({fmt}, {len(payload)} bytes)")
    return path
