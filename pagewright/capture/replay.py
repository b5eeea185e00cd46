from __future__ import annotations

"""Replay log
-------------
Per-run HTML replay: every pagewright log record is mirrored into
<REPLAY_DIR>/<tag>/index.html, and `capture()` adds numbered screenshots
(optionally with a thumbnail) and DOM snapshots linked from that page.
Capturing is best effort; failures are logged at warning level.
"""

import logging
import re
import shutil
from pathlib import Path
from typing import Any, Optional

from PIL import Image

from pagewright.utils.config import Settings, get_settings
from pagewright.utils.logger import HtmlFormatter, attach_file_logger, detach_file_logger, get_logger

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


class ReplayLog:
    def __init__(self, tag: str, settings: Optional[Settings] = None, replay_dir: Optional[Path] = None) -> None:
        self.settings = settings or get_settings()
        self.tag = _UNSAFE.sub("_", tag).strip("_") or "replay"
        self.path = Path(replay_dir or self.settings.REPLAY_DIR) / self.tag
        shutil.rmtree(self.path, ignore_errors=True)
        self.path.mkdir(parents=True, exist_ok=True)
        self.index = self.path / "index.html"

        self._log = get_logger(__name__)
        # plain Logger: LoggerAdapter would drop the per-record raw_html flag
        self._links = logging.getLogger(f"pagewright.replay.{self.tag}")
        self._links.setLevel(logging.DEBUG)
        self._handler: Optional[logging.Handler] = attach_file_logger(
            self.index, level=logging.DEBUG, formatter=HtmlFormatter(self.tag), mode="w"
        )
        self._count = 0
        self._log.info(f"Replay log for {self.tag} at {self.index}")

    def __enter__(self) -> "ReplayLog":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def captures(self) -> int:
        return self._count

    def log(self, level: int, message: str) -> None:
        self._links.log(level, message)

    def _link(self, html_fragment: str) -> None:
        self._links.debug(html_fragment, extra={"raw_html": True})

    def capture(self, driver: Any, session: Any = None) -> None:
        """Screenshot (when enabled) and DOM snapshot of the driver's current page."""
        self._count += 1
        n = self._count
        screenshots = getattr(session, "screenshots", self.settings.REPLAY_SCREENSHOTS)
        thumbnails = getattr(session, "thumbnails", self.settings.REPLAY_THUMBNAILS)

        if screenshots:
            shot = self.path / f"screenshot_{n}.png"
            try:
                driver.screenshot(shot)
                if thumbnails:
                    thumb = self._thumbnail(shot)
                    self._link(f'Screenshot: <a href="{shot.name}"><img src="{thumb.name}" /></a>')
                else:
                    self._link(f'<a href="{shot.name}">Screenshot</a>')
            except Exception as exc:
                self._log.warning(f"Screenshot failed with exception {exc!r}")

        snapshot = self.path / f"html_capture_{n}.txt"
        try:
            snapshot.write_text(driver.html(), encoding="utf-8")
            self._link(f'<a href="{snapshot.name}">HTML Source</a>')
        except Exception as exc:
            self._log.warning(f"HTML capture failed with exception {exc!r}")

    def _thumbnail(self, shot: Path) -> Path:
        thumb = shot.with_name(f"{shot.stem}_thumb{shot.suffix}")
        width = self.settings.THUMBNAIL_WIDTH
        with Image.open(shot) as im:
            height = max(1, round(im.height * width / im.width))
            im.resize((width, height)).save(thumb)
        return thumb

    def close(self) -> None:
        if self._handler is not None:
            detach_file_logger(self._handler)
            self._handler = None
