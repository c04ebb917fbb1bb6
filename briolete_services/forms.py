"""Request body parsing for HTML form submissions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qsl

from python_multipart.exceptions import FormParserError
from python_multipart.multipart import MultipartParser, parse_options_header

from .errors import FormError


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return "bin"
        return self.filename.rsplit(".", 1)[-1].lower() or "bin"


@dataclass
class FormData:
    fields: Dict[str, str] = field(default_factory=dict)
    files: Dict[str, UploadedFile] = field(default_factory=dict)

    def get(self, name: str, default: str = "") -> str:
        return self.fields.get(name, default)

    def file(self, name: str) -> Optional[UploadedFile]:
        return self.files.get(name)


def parse_form(content_type: Optional[str], body: bytes) -> FormData:
    content_type = (content_type or "").strip()
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type == "multipart/form-data":
        return _parse_multipart(content_type, body)
    if media_type == "application/x-www-form-urlencoded":
        return _parse_urlencoded(body)
    raise FormError(f"Unsupported form content type: {media_type or 'none'}")


def _parse_urlencoded(body: bytes) -> FormData:
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FormError("Form body must be UTF-8 encoded.") from exc
    return FormData(fields=dict(parse_qsl(text, keep_blank_values=True)))



class _PartCollector:
    """Accumulates parser callbacks into complete parts."""

    def __init__(self) -> None:
        self.parts: List[Tuple[Dict[str, bytes], bytes]] = []
        self.ended = False
        self._headers: Dict[str, bytes] = {}
        self._field = b""
        self._value = b""
        self._data: List[bytes] = []

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_end": self.on_end,
        }

    def on_part_begin(self) -> None:
        self._headers = {}
        self._data = []

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[self._field.decode("latin-1").strip().lower()] = self._value.strip()
        self._field = b""
        self._value = b""

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._data.append(data[start:end])

    def on_part_end(self) -> None:
        self.parts.append((self._headers, b"".join(self._data)))

    def on_end(self) -> None:
        self.ended = True


def _parse_multipart(content_type: str, body: bytes) -> FormData:
    _, options = parse_options_header(content_type)
    boundary = options.get(b"boundary")
    if not boundary:
        raise FormError("Multipart body has no boundary.")

    collector = _PartCollector()
    parser = MultipartParser(boundary, collector.callbacks())
    try:
        parser.write(body)
        parser.finalize()
    except FormParserError as exc:
        raise FormError(f"Malformed multipart body: {exc}") from exc
    if not collector.ended:
        raise FormError("Malformed multipart body: missing closing boundary.")

    form = FormData()
    for headers, payload in collector.parts:
        _, disposition = parse_options_header(headers.get("content-disposition", b""))
        name = disposition.get(b"name", b"").decode("utf-8", errors="replace")
        if not name:
            continue
        part_type, part_options = parse_options_header(headers.get("content-type", b""))
        raw_filename = disposition.get(b"filename")
        if raw_filename is None:
            charset = part_options.get(b"charset", b"utf-8").decode("latin-1")
            try:
                form.fields[name] = payload.decode(charset, errors="replace")
            except LookupError:
                form.fields[name] = payload.decode("utf-8", errors="replace")
            continue
        # Browsers send an empty part for a file input left blank.
        if not raw_filename and not payload:
            continue
        form.files[name] = UploadedFile(
            filename=raw_filename.decode("utf-8", errors="replace"),
            content_type=part_type.decode("latin-1").lower() or "application/octet-stream",
            content=payload,
        )
    return form
