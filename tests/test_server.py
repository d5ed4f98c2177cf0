import io
import os
import subprocess
from datetime import datetime, timezone
from unittest import mock

import pytest

from tritontube.fs import FSVideoContentService
from tritontube.models import VideoMetadata, VideoMetadataService, VideoNotFoundError
from tritontube.server import content_type_for, create_app, transcode


class MemoryMetadata(VideoMetadataService):
    def __init__(self):
        self.records = {}

    def read(self, video_id):
        try:
            return self.records[video_id]
        except KeyError:
            raise VideoNotFoundError(video_id) from None

    def list(self):
        return sorted(self.records.values(), key=lambda m: m.uploaded_at, reverse=True)

    def create(self, video_id, uploaded_at):
        self.records[video_id] = VideoMetadata(video_id, uploaded_at)


class BrokenMetadata(MemoryMetadata):
    def list(self):
        raise RuntimeError("database gone")


@pytest.fixture
def metadata():
    return MemoryMetadata()


@pytest.fixture
def content(tmp_path):
    return FSVideoContentService(str(tmp_path / "content"))


@pytest.fixture
def client(metadata, content):
    app = create_app(metadata, content)
    app.testing = True
    return app.test_client()


@pytest.fixture
def tmp_root(tmp_path):
    root = tmp_path / "tmp"
    root.mkdir()
    return root


def fake_ffmpeg(command, **kwargs):
    manifest = command[-1]
    with open(manifest, "wb") as handle:
        handle.write(b"<MPD/>")
    with open(os.path.join(os.path.dirname(manifest), "init-0.m4s"), "wb") as handle:
        handle.write(b"init")
    return subprocess.CompletedProcess(command, 0, stdout=b"")


def failing_ffmpeg(command, **kwargs):
    return subprocess.CompletedProcess(command, 1, stdout=b"bad input")


def post_video(client, name="clip.mp4", body=b"video-bytes"):
    return client.post(
        "/upload",
        data={"file": (io.BytesIO(body), name)},
        content_type="multipart/form-data",
    )


def test_content_type_for_dash_files():
    assert content_type_for("manifest.mpd") == "application/dash+xml"
    assert content_type_for("MANIFEST.MPD") == "application/dash+xml"
    assert content_type_for("chunk-0-00001.m4s") == "video/iso.segment"


def test_transcode_runs_ffmpeg_into_output_dir(tmp_path):
    calls = []

    def record(command, **kwargs):
        calls.append(command)
        return subprocess.CompletedProcess(command, 0, stdout=b"")

    with mock.patch("tritontube.server.subprocess.run", side_effect=record):
        manifest = transcode("in.mp4", str(tmp_path))
    assert manifest == os.path.join(str(tmp_path), "manifest.mpd")
    assert calls[0][0] == "ffmpeg"
    assert calls[0][calls[0].index("-i") + 1] == "in.mp4"
    assert calls[0][-1] == manifest


def test_transcode_failure_raises(tmp_path):
    with mock.patch("tritontube.server.subprocess.run", side_effect=failing_ffmpeg):
        with pytest.raises(RuntimeError):
            transcode("in.mp4", str(tmp_path))


def test_transcode_missing_program_raises(tmp_path):
    with mock.patch("tritontube.server.subprocess.run", side_effect=FileNotFoundError("ffmpeg")):
        with pytest.raises(RuntimeError):
            transcode("in.mp4", str(tmp_path))


def test_index_without_videos(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "videos: null," in response.get_data(as_text=True)


def test_index_lists_videos(client, metadata):
    metadata.create("alpha", datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
    response = client.get("/anything/else")
    assert response.status_code == 200
    assert '"Id":"alpha"' in response.get_data(as_text=True)


def test_index_list_failure(content):
    app = create_app(BrokenMetadata(), content)
    response = app.test_client().get("/")
    assert response.status_code == 500
    assert response.get_data(as_text=True) == "Failed to read video list\n"


def test_video_page(client, metadata):
    metadata.create("alpha", datetime(2024, 1, 2, tzinfo=timezone.utc))
    response = client.get("/videos/alpha")
    assert response.status_code == 200
    assert "/content/alpha/manifest.mpd" in response.get_data(as_text=True)


def test_video_page_missing(client):
    response = client.get("/videos/ghost")
    assert response.status_code == 404
    assert response.get_data(as_text=True) == "Video not found\n"


def test_content_served_with_type(client, content):
    content.write("alpha", "manifest.mpd", b"<MPD/>")
    response = client.get("/content/alpha/manifest.mpd")
    assert response.status_code == 200
    assert response.data == b"<MPD/>"
    assert response.headers["Content-Type"] == "application/dash+xml"


@pytest.mark.parametrize("path", ["/content/alpha", "/content/a/b/c", "/content/"])
def test_content_bad_path(client, path):
    response = client.get(path)
    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Invalid content path\n"


def test_content_missing(client):
    response = client.get("/content/ghost/manifest.mpd")
    assert response.status_code == 500
    assert response.get_data(as_text=True) == "Content not found\n"


def test_upload_stores_content_and_metadata(client, metadata, content, tmp_root):
    with mock.patch("tritontube.server.subprocess.run", side_effect=fake_ffmpeg), \
            mock.patch("tritontube.server.tempfile.gettempdir", return_value=str(tmp_root)):
        response = post_video(client)
    assert response.status_code == 303
    assert response.headers["Location"] == "/"
    assert metadata.read("clip").id == "clip"
    assert content.read("clip", "manifest.mpd") == b"<MPD/>"
    assert content.read("clip", "init-0.m4s") == b"init"
    assert (tmp_root / "clip.mp4").read_bytes() == b"video-bytes"


def test_upload_duplicate_conflicts(client, metadata, tmp_root):
    metadata.create("clip", datetime.now(timezone.utc))
    with mock.patch("tritontube.server.subprocess.run", side_effect=fake_ffmpeg), \
            mock.patch("tritontube.server.tempfile.gettempdir", return_value=str(tmp_root)):
        response = post_video(client)
    assert response.status_code == 409
    assert response.get_data(as_text=True) == "Video ID already exists\n"


def test_upload_without_file(client):
    response = client.post(
        "/upload", data={"other": "x"}, content_type="multipart/form-data"
    )
    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Failed to get file\n"


def test_upload_not_multipart(client):
    response = client.get("/upload")
    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Could not parse form\n"


def test_upload_ffmpeg_failure(client, metadata, tmp_root):
    with mock.patch("tritontube.server.subprocess.run", side_effect=failing_ffmpeg), \
            mock.patch("tritontube.server.tempfile.gettempdir", return_value=str(tmp_root)):
        response = post_video(client)
    assert response.status_code == 500
    assert response.get_data(as_text=True) == "FFmpeg conversion failed\n"
    assert metadata.records == {}