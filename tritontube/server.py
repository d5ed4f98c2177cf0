"""HTTP front end: upload, watch and stream videos."""

from __future__ import annotations

import logging
import mimetypes
import os
import subprocess
import tempfile
from datetime import datetime, timezone

from flask import Flask, Response, request

from tritontube.models import VideoContentService, VideoMetadataService, VideoNotFoundError
from tritontube.templates import render_index, render_video

logger = logging.getLogger(__name__)

_MANIFEST = "manifest.mpd"
_CONTENT_TYPES = {
    ".mpd": "application/dash+xml",
    ".m4s": "video/iso.segment",
}
_ANY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


def _error(message: str, status: int) -> Response:
    return Response(message + "\n", status=status, mimetype="text/plain")


def _extension(filename: str) -> str:
    base = filename.rsplit("/", 1)[-1]
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


def content_type_for(filename: str) -> str:
    """Return the Content-Type to serve ``filename`` with."""
    known = _CONTENT_TYPES.get(_extension(filename).lower())
    if known:
        return known
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"


def transcode(input_path: str, output_dir: str) -> str:
    """Convert ``input_path`` to MPEG-DASH in ``output_dir``; return the manifest path."""
    manifest = os.path.join(output_dir, _MANIFEST)
    command = [
        "ffmpeg",
        "-i", input_path,
        "-c:v", "libx264",
        "-c:a", "aac",
        "-bf", "1",
        "-keyint_min", "120",
        "-g", "120",
        "-sc_threshold", "0",
        "-b:v", "3000k",
        "-b:a", "128k",
        "-f", "dash",
        "-use_timeline", "1",
        "-use_template", "1",
        "-init_seg_name", "init-$RepresentationID$.m4s",
        "-media_seg_name", "chunk-$RepresentationID$-$Number%05d$.m4s",
        "-seg_duration", "4",
        manifest,
    ]
    try:
        result = subprocess.run(
            command, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=False
        )
    except OSError as exc:
        raise RuntimeError(f"ffmpeg could not be started: {exc}") from exc
    if result.returncode != 0:
        output = (result.stdout or b"").decode("utf-8", errors="replace")
        logger.error("ffmpeg output: %s", output)
        raise RuntimeError(f"ffmpeg exited with status {result.returncode}")
    return manifest


def create_app(
    metadata_service: VideoMetadataService, content_service: VideoContentService
) -> Flask:
    """Build the web application serving the given services."""
    app = Flask(__name__)

    @app.route("/upload", methods=_ANY_METHOD)
    def upload():
        if request.mimetype != "multipart/form-data":
            return _error("Could not parse form", 400)
        try:
            upload_file = request.files.get("file")
        except Exception:
            return _error("Could not parse form", 400)
        if upload_file is None:
            return _error("Failed to get file", 400)

        filename = os.path.basename(upload_file.filename or "")
        extension = _extension(filename)
        video_id = filename[: len(filename) - len(extension)] if extension else filename

        try:
            metadata_service.read(video_id)
        except VideoNotFoundError:
            pass
        except Exception as exc:
            if "not found" not in str(exc):
                return _error(str(exc), 500)
        else:
            return _error("Video ID already exists", 409)

        tmp_dir = tempfile.gettempdir()
        tmp_in = os.path.join(tmp_dir, filename)
        out_dir = os.path.join(tmp_dir, video_id)
        try:
            os.makedirs(out_dir, mode=0o755, exist_ok=True)
        except OSError:
            return _error("Failed to create tmp dir", 500)

        try:
            upload_file.save(tmp_in)
        except OSError:
            return _error("Failed to save tmp file", 500)

        try:
            transcode(tmp_in, out_dir)
        except RuntimeError:
            return _error("FFmpeg conversion failed", 500)

        try:
            entries = sorted(os.scandir(out_dir), key=lambda entry: entry.name)
        except OSError:
            return _error("Failed to read out dir", 500)
        for entry in entries:
            if entry.is_dir():
                continue
            try:
                with open(entry.path, "rb") as handle:
                    data = handle.read()
            except OSError as exc:
                logger.error("Read failed: %s", exc)
                return _error("Failed to read segment file", 500)
            try:
                content_service.write(video_id, entry.name, data)
            except Exception as exc:
                logger.error("Write failed: %s", exc)
                return _error("Failed to write segment file", 500)

        try:
            metadata_service.create(video_id, datetime.now(timezone.utc))
        except Exception:
            return _error("Failed to write metadata", 500)

        return Response(status=303, headers={"Location": "/"})

    @app.route("/videos/", defaults={"video_id": ""}, methods=_ANY_METHOD)
    @app.route("/videos/<path:video_id>", methods=_ANY_METHOD)
    def video(video_id: str):
        logger.info("GET Video ID: %s", video_id)
        try:
            meta = metadata_service.read(video_id)
        except Exception:
            return _error("Video not found", 404)
        return Response(render_video(meta), mimetype="text/html")

    @app.route("/content/", defaults={"rest": ""}, methods=_ANY_METHOD)
    @app.route("/content/<path:rest>", methods=_ANY_METHOD)
    def content(rest: str):
        parts = rest.split("/")
        if len(parts) != 2:
            return _error("Invalid content path", 400)
        video_id, filename = parts
        logger.info("GET Video ID: %s, Filename: %s", video_id, filename)
        try:
            data = content_service.read(video_id, filename)
        except Exception:
            return _error("Content not found", 500)
        return Response(data, content_type=content_type_for(filename))

    @app.route("/", defaults={"path": ""}, methods=_ANY_METHOD)
    @app.route("/<path:path>", methods=_ANY_METHOD)
    def index(path: str):
        try:
            videos = metadata_service.list()
        except Exception:
            return _error("Failed to read video list", 500)
        return Response(render_index(videos), mimetype="text/html")

    return app