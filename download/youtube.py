"""yt-dlp backed downloader producing an mp3 plus the video's raw title."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass

from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError as YtDlpDownloadError
from yt_dlp.utils import ExtractorError

from engine.errors import DownloadError

logger = logging.getLogger(__name__)

AUDIO_CODEC = "mp3"
AUDIO_QUALITY_KBPS = "128"


@dataclass(frozen=True)
class DownloadResult:
    file_path: str
    title: str
    video_id: str | None = None
    temp_dir: str | None = None

    def cleanup(self) -> None:
        if self.temp_dir:
            shutil.rmtree(self.temp_dir, ignore_errors=True)
        elif self.file_path and os.path.exists(self.file_path):
            os.remove(self.file_path)


def build_ytdlp_opts(output_dir: str, *, cookie_file: str | None = None) -> dict:
    opts = {
        "format": "bestaudio/best",
        "outtmpl": os.path.join(output_dir, "%(id)s.%(ext)s"),
        "noplaylist": True,
        "quiet": True,
        "no_warnings": True,
        "overwrites": True,
        "postprocessors": [
            {
                "key": "FFmpegExtractAudio",
                "preferredcodec": AUDIO_CODEC,
                "preferredquality": AUDIO_QUALITY_KBPS,
            }
        ],
    }
    if cookie_file:
        opts["cookiefile"] = cookie_file
    return opts


def resolve_title(info: dict | None) -> str:
    info = info or {}
    title = str(info.get("title") or "").strip()
    if title:
        return title
    return f"Video_{info.get('id') or 'unknown'}"


class YoutubeDownloader:
    def __init__(self, *, temp_root: str | None = None, cookie_file: str | None = None, ydl_factory=YoutubeDL):
        self.temp_root = temp_root
        self.cookie_file = cookie_file
        self._ydl_factory = ydl_factory

    def download(self, url: str) -> DownloadResult:
        if not url or not str(url).strip():
            raise DownloadError("url is required")
        if self.temp_root:
            os.makedirs(self.temp_root, exist_ok=True)
        temp_dir = tempfile.mkdtemp(prefix="songimport-", dir=self.temp_root)
        opts = build_ytdlp_opts(temp_dir, cookie_file=self.cookie_file)
        try:
            with self._ydl_factory(opts) as ydl:
                info = ydl.extract_info(url, download=True)
        except (YtDlpDownloadError, ExtractorError) as exc:
            shutil.rmtree(temp_dir, ignore_errors=True)
            logger.warning("yt-dlp download failed url=%s error=%s", url, exc)
            raise DownloadError(f"download failed: {exc}") from exc

        video_id = (info or {}).get("id")
        file_path = os.path.join(temp_dir, f"{video_id}.{AUDIO_CODEC}") if video_id else None
        if not file_path or not os.path.exists(file_path):
            file_path = _find_audio_file(temp_dir)
        if not file_path:
            shutil.rmtree(temp_dir, ignore_errors=True)
            raise DownloadError(f"no {AUDIO_CODEC} produced for {url}")

        title = resolve_title(info)
        logger.info("Downloaded %s -> %s (%s)", url, file_path, title)
        return DownloadResult(file_path=file_path, title=title, video_id=video_id, temp_dir=temp_dir)


def _find_audio_file(directory: str) -> str | None:
    for name in sorted(os.listdir(directory)):
        if name.lower().endswith(f".{AUDIO_CODEC}"):
            return os.path.join(directory, name)
    return None
