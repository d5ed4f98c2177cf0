"""Video metadata kept in etcd, reached through its JSON gateway."""

from __future__ import annotations

import base64
import json
import re
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from tritontube.models import VideoMetadata, VideoMetadataService, VideoNotFoundError
from tritontube.templates import to_json

_DIAL_TIMEOUT = 5.0
_ALL_KEYS = base64.b64encode(b"\x00").decode("ascii")
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_TIMESTAMP = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _base_url(endpoint: str) -> str:
    endpoint = endpoint.strip()
    if "://" not in endpoint:
        endpoint = f"http://{endpoint}"
    return endpoint.rstrip("/")


def _parse_time(text: Any) -> datetime:
    match = _TIMESTAMP.fullmatch(text) if isinstance(text, str) else None
    if match is None:
        raise ValueError(f"unmarshal metadata: bad time {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micros = int((fraction or "")[:6].ljust(6, "0"))
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    try:
        return datetime(int(year), int(month), int(day), int(hour), int(minute),
                        int(second), micros, tzinfo=tz)
    except ValueError as exc:
        raise ValueError(f"unmarshal metadata: {exc}") from exc


def _decode_metadata(raw: bytes) -> VideoMetadata:
    try:
        doc = json.loads(raw)
    except ValueError as exc:
        raise ValueError(f"unmarshal metadata: {exc}") from exc
    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        raise ValueError("unmarshal metadata: value is not an object")
    video_id = doc.get("Id", "")
    if not isinstance(video_id, str):
        raise ValueError("unmarshal metadata: Id is not a string")
    stamp = doc.get("UploadedAt")
    uploaded_at = _ZERO_TIME if stamp is None else _parse_time(stamp)
    return VideoMetadata(video_id, uploaded_at)


class EtcdVideoMetadataService(VideoMetadataService):
    """Metadata service storing one JSON document per video id in etcd.

    ``endpoints`` is a comma-separated list tried in order; ``transport``
    optionally replaces the HTTP transport.
    """

    def __init__(self, endpoints: str, transport: httpx.BaseTransport | None = None) -> None:
        self._endpoints = [_base_url(e) for e in endpoints.split(",") if e.strip()]
        if not self._endpoints:
            raise ValueError("failed to connect to etcd: no endpoints given")
        self._http = httpx.Client(transport=transport, timeout=_DIAL_TIMEOUT)

    def _post(self, path: str, body: dict[str, str], action: str) -> dict[str, Any]:
        last_error: Exception | None = None
        for base in self._endpoints:
            try:
                response = self._http.post(f"{base}{path}", json=body)
            except httpx.TransportError as exc:
                last_error = exc
                continue
            if response.is_error:
                raise ConnectionError(f"{action} failed: HTTP {response.status_code}")
            try:
                return response.json()
            except ValueError as exc:
                raise ConnectionError(f"{action} failed: bad reply: {exc}") from exc
        raise ConnectionError(f"{action} failed: {last_error}")

    def create(self, video_id: str, uploaded_at: datetime) -> None:
        document = to_json(VideoMetadata(video_id, uploaded_at))
        self._post(
            "/v3/kv/put",
            {"key": _b64(video_id.encode("utf-8")), "value": _b64(document.encode("utf-8"))},
            "etcd put",
        )

    def read(self, video_id: str) -> VideoMetadata:
        reply = self._post(
            "/v3/kv/range", {"key": _b64(video_id.encode("utf-8"))}, "etcd get"
        )
        kvs = reply.get("kvs") or []
        if not kvs:
            raise VideoNotFoundError(video_id)
        return _decode_metadata(base64.b64decode(kvs[0].get("value", "")))

    def list(self) -> list[VideoMetadata]:
        reply = self._post(
            "/v3/kv/range", {"key": _ALL_KEYS, "range_end": _ALL_KEYS}, "etcd list"
        )
        result = []
        for kv in reply.get("kvs") or []:
            try:
                result.append(_decode_metadata(base64.b64decode(kv.get("value", ""))))
            except ValueError:
                continue
        return result

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()