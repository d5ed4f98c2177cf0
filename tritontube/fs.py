"""Video content stored as plain files on the local filesystem."""

from __future__ import annotations

import os

from tritontube.models import VideoContentService


class FSVideoContentService(VideoContentService):
    """Keeps each video's files in ``base_dir/<video_id>/``."""

    def __init__(self, base_dir: str) -> None:
        os.makedirs(base_dir, mode=0o755, exist_ok=True)
        self.base_dir = base_dir

    def write(self, video_id: str, filename: str, data: bytes) -> None:
        video_dir = os.path.join(self.base_dir, video_id)
        os.makedirs(video_dir, mode=0o755, exist_ok=True)
        with open(os.path.join(video_dir, filename), "wb") as handle:
            handle.write(data)

    def read(self, video_id: str, filename: str) -> bytes:
        with open(os.path.join(self.base_dir, video_id, filename), "rb") as handle:
            return handle.read()