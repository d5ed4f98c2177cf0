"""HTML pages of the web front end."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Iterable

import jinja2

from tritontube.models import VideoMetadata

_JSON_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)

_JS_STRING_ESCAPES = {
    "\0": "\\u0000",
    "\t": "\\t",
    "\n": "\\n",
    "\v": "\\u000b",
    "\f": "\\f",
    "\r": "\\r",
    '"': "\\u0022",
    "&": "\\u0026",
    "'": "\\u0027",
    "+": "\\u002b",
    "/": "\\/",
    "<": "\\u003c",
    ">": "\\u003e",
    "\\": "\\\\",
    "`": "\\u0060",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

_ASSETS = {
    "bootstrap_css": "https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/css/bootstrap.min.css",
    "bootstrap_js": "https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/js/bootstrap.bundle.min.js",
    "vue_js": "https://unpkg.com/vue@3/dist/vue.global.prod.js",
    "dash_js": "https://cdn.dashjs.org/latest/dash.all.min.js",
}


def _split_offset(moment: datetime) -> tuple[datetime, int]:
    if moment.tzinfo is None:
        moment = moment.astimezone()
    offset = moment.utcoffset()
    return moment, int(offset.total_seconds()) if offset else 0


def _offset_text(seconds: int, separator: str) -> str:
    sign = "-" if seconds < 0 else "+"
    seconds = abs(seconds)
    return f"{sign}{seconds // 3600:02d}{separator}{seconds % 3600 // 60:02d}"


def _fraction(moment: datetime) -> str:
    digits = f"{moment.microsecond:06d}".rstrip("0")
    return f".{digits}" if digits else ""


def _format_rfc3339(moment: datetime) -> str:
    moment, offset = _split_offset(moment)
    zone = "Z" if offset == 0 else _offset_text(offset, ":")
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
        f"{_fraction(moment)}{zone}"
    )


def _format_display(moment: datetime) -> str:
    moment, offset = _split_offset(moment)
    numeric = _offset_text(offset, "")
    name = moment.tzname()
    if offset == 0:
        name = "UTC"
    elif not name or not name.isalpha():
        name = numeric
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f" {moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
        f"{_fraction(moment)} {numeric} {name}"
    )


def _js_string(text: str) -> str:
    return "".join(
        _JS_STRING_ESCAPES.get(ch, f"\\u{ord(ch):04x}" if ord(ch) < 0x20 else ch)
        for ch in text
    )


def _plain(value: Any) -> Any:
    if isinstance(value, VideoMetadata):
        return {"Id": value.id, "UploadedAt": _format_rfc3339(value.uploaded_at)}
    if isinstance(value, datetime):
        return _format_rfc3339(value)
    if isinstance(value, dict):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def to_json(value: Any) -> str:
    """Encode ``value`` as JSON that is safe to embed in a script block."""
    text = json.dumps(
        _plain(value), ensure_ascii=False, separators=(",", ":"), sort_keys=True
    )
    for raw, escaped in _JSON_ESCAPES:
        text = text.replace(raw, escaped)
    return text


_LAYOUT = """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8" />
<title>{% block title %}{% endblock %}</title>
<link rel="stylesheet" href="{{ assets.bootstrap_css }}" />
{% block head_scripts %}{% endblock %}
</head>
<body class="{% block body_class %}{% endblock %}">
{% block body %}{% endblock %}
</body>
</html>
"""

_INDEX_HTML = """{% extends "layout" %}
{% block title %}TritonTube{% endblock %}
{% block head_scripts %}<script src="{{ assets.vue_js }}"></script>{% endblock %}
{% block body_class %}bg-light{% endblock %}
{% block body %}
<div id="app" class="container py-5">
  <h1 class="mb-4 text-primary">🎥 TritonTube</h1>
  <h3>Upload an MP4 Video</h3>
  <div class="mb-3">
    <input type="file" class="form-control" accept="video/mp4"
           ref="fileInput" @change="onFileChange" />
  </div>
  <button class="btn btn-success mb-3" :disabled="!file" @click="upload">Upload</button>
  <div v-if="progress >= 0" class="mb-4">
    <div class="progress">
      <div class="progress-bar" role="progressbar"
           :style="{ width: progress + '%' }" v-text="progress + '%'"></div>
    </div>
  </div>
  <h3>Watchlist</h3>
  <ul class="list-group">
    {% raw %}<li v-for="v in videos" :key="v.Id"
        class="list-group-item d-flex justify-content-between align-items-center">
      <a :href="'/videos/' + v.Id" class="link">{{ v.Id }}</a>
      <small class="text-muted">{{ v.UploadedAt }}</small>
    </li>{% endraw %}
    <li v-if="videos.length === 0" class="list-group-item">No videos uploaded yet.</li>
  </ul>
</div>
<script>
  Vue.createApp({
    data: () => ({ file: null, progress: -1, videos: {{ videos_json | safe }} }),
    methods: {
      onFileChange(event) {
        this.file = event.target.files[0];
      },
      upload() {
        if (!this.file) return;
        const body = new FormData();
        body.append("file", this.file);
        const request = new XMLHttpRequest();
        request.open("POST", "/upload");
        request.upload.addEventListener("progress", (e) => {
          if (e.lengthComputable) this.progress = Math.floor((e.loaded / e.total) * 100);
        });
        request.onload = () => {
          if (request.status === 200) location.reload();
          else alert("Upload error: " + request.statusText);
        };
        request.onerror = () => alert("Upload failed");
        request.send(body);
      },
    },
  }).mount("#app");
</script>
<script src="{{ assets.bootstrap_js }}"></script>
{% endblock %}
"""

_VIDEO_HTML = """{% extends "layout" %}
{% block title %}{{ video_id }} - TritonTube{% endblock %}
{% block head_scripts %}<script src="{{ assets.dash_js }}"></script>{% endblock %}
{% block body_class %}bg-dark text-light{% endblock %}
{% block body %}
<div class="container py-5">
  <h1 class="text-warning">{{ video_id }}</h1>
  <p>Uploaded at: {{ uploaded_at }}</p>
  <div class="ratio ratio-16x9 mb-3">
    <video id="dashPlayer" controls class="rounded bg-black"></video>
  </div>
  <script>
    const url = "/content/{{ video_id_js | safe }}/manifest.mpd";
    dashjs.MediaPlayer().create().initialize(document.querySelector("#dashPlayer"), url, false);
  </script>
  <a href="/" class="btn btn-outline-light mt-3">← Back to Home</a>
</div>
{% endblock %}
"""

_ENV = jinja2.Environment(
    loader=jinja2.DictLoader(
        {"layout": _LAYOUT, "index": _INDEX_HTML, "video": _VIDEO_HTML}
    ),
    autoescape=True,
)
_ENV.globals["assets"] = _ASSETS
_INDEX = _ENV.get_template("index")
_VIDEO = _ENV.get_template("video")


def render_index(videos: Iterable[VideoMetadata] | None) -> str:
    """Render the home page listing ``videos``."""
    listed = None if videos is None else list(videos)
    return _INDEX.render(videos_json=to_json(listed))


def render_video(meta: VideoMetadata) -> str:
    """Render the player page for one video."""
    return _VIDEO.render(
        video_id=meta.id,
        video_id_js=_js_string(meta.id),
        uploaded_at=_format_display(meta.uploaded_at),
    )