"""
Diagnostics Collector - Screenshot + text note on failure.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, TYPE_CHECKING
import logging
import re
import traceback

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class DiagnosticCapture:
    """
    Files written for one failure.

    Attributes:
        tag: Short failure label
        timestamp: When the capture was taken
        screenshot_path: Full-page PNG, None if the screenshot failed
        note_path: Text note, None if writing it failed
        request_id: Identifier in progress, if any
        identity: Identity in progress, if any
    """
    tag: str
    timestamp: datetime
    screenshot_path: Optional[Path] = None
    note_path: Optional[Path] = None
    request_id: Optional[str] = None
    identity: Optional[str] = None


class DiagnosticsCollector:
    """
    Capture failure evidence under a dedicated errors area.

    Capturing never raises: a broken page must not turn a recorded
    failure into a crash.

    Example:
        >>> collector = DiagnosticsCollector("./logs/errors", run_id="20240101_120000")
        >>> capture = await collector.capture(page, tag="switch-failed", note="indicator empty")
    """

    def __init__(
        self,
        output_dir: str | Path,
        run_id: str,
        full_page: bool = True,
    ):
        """
        Initialize the collector.

        Args:
            output_dir: Root of the errors area
            run_id: Run identifier, used as sub-directory
            full_page: Capture the whole scrollable page
        """
        self.output_dir = Path(output_dir) / run_id
        self.run_id = run_id
        self.full_page = full_page
        self._captures: List[DiagnosticCapture] = []

        self.output_dir.mkdir(parents=True, exist_ok=True)

    @property
    def captures(self) -> List[DiagnosticCapture]:
        return self._captures.copy()

    async def capture(
        self,
        page: Optional["Page"],
        tag: str,
        note: str = "",
        request_id: Optional[str] = None,
        identity: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> DiagnosticCapture:
        """
        Write a screenshot and a text note.

        Args:
            page: Page to capture; None writes the note only
            tag: Short failure label used in the file names
            note: Human-readable description
            request_id: Identifier in progress
            identity: Identity in progress
            error: Exception to include with its traceback

        Returns:
            DiagnosticCapture with whatever could be written
        """
        timestamp = datetime.now()
        stem = f"{timestamp.strftime('%H%M%S_%f')[:-3]}_{_UNSAFE.sub('_', tag)}"
        result = DiagnosticCapture(
            tag=tag,
            timestamp=timestamp,
            request_id=request_id,
            identity=identity,
        )

        url = "<no page>"
        if page is not None:
            try:
                url = page.url
            except Exception as e:
                url = f"<unavailable: {e}>"

            path = self.output_dir / f"{stem}.png"
            try:
                await page.screenshot(path=str(path), full_page=self.full_page)
                result.screenshot_path = path
            except Exception as e:
                logger.warning(f"Screenshot for '{tag}' failed: {e}")

        lines = [
            f"time: {timestamp.isoformat(timespec='seconds')}",
            f"tag: {tag}",
            f"url: {url}",
        ]
        if request_id:
            lines.append(f"request_id: {request_id}")
        if identity:
            lines.append(f"identity: {identity}")
        if note:
            lines.extend(["", note])
        if error is not None:
            lines.extend(["", f"{type(error).__name__}: {error}"])
            lines.extend(traceback.format_exception(type(error), error, error.__traceback__))

        note_path = self.output_dir / f"{stem}.txt"
        try:
            note_path.write_text("\n".join(line.rstrip("\n") for line in lines) + "\n", encoding="utf-8")
            result.note_path = note_path
        except OSError as e:
            logger.warning(f"Diagnostic note for '{tag}' failed: {e}")

        self._captures.append(result)
        logger.info(f"Diagnostics captured: {result.screenshot_path or note_path}")
        return result
