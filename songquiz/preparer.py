"""Background clip preparation: download, trim, then one terminal write per round."""

import logging
import shutil
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from .errors import NotFoundError, ToolInvocationError
from .media import CLIP_FILENAME, AudioTrimmer, MediaTool
from .rounds import RoundStore

logger = logging.getLogger(__name__)


class ClipPreparer:
    """Runs each round's download + trim on a worker pool.

    Every round is bounded by ``timeout`` seconds counted from dispatch, so time
    spent queued behind busy workers counts too. A watchdog timer fails the
    round when the ceiling passes, and a late result is then discarded because
    the round is already terminal. No step is retried.
    """

    def __init__(self, store: RoundStore, media: MediaTool, trimmer: AudioTrimmer,
                 workers: int = 4, timeout: float = 180.0, clip_dir: Optional[str] = None):
        self.store = store
        self.media = media
        self.trimmer = trimmer
        self.timeout = timeout
        self.clip_dir = clip_dir or None
        self._pool = ThreadPoolExecutor(max_workers=max(1, int(workers)), thread_name_prefix="clip")

    def dispatch(self, round_id: str) -> Future:
        """Schedule preparation for a freshly created round and return at once."""
        watchdog = threading.Timer(self.timeout, self._expire, args=(round_id,))
        watchdog.daemon = True
        watchdog.start()
        return self._pool.submit(self._run, round_id, watchdog)

    def _scratch_dir(self, round_id: str) -> Path:
        if self.clip_dir:
            Path(self.clip_dir).mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=f"songclip_{round_id}_", dir=self.clip_dir))

    def _expire(self, round_id: str) -> None:
        if self.store.mark_failed(round_id, f"clip preparation timed out after {int(self.timeout)}s"):
            logger.warning("Round %s timed out during clip preparation", round_id)

    def prepare(self, source_ref: str, clip_length: int, scratch: Path) -> Path:
        raw = self.media.download(source_ref, scratch)
        clip = self.trimmer.trim(raw, clip_length, scratch / CLIP_FILENAME)
        raw.unlink(missing_ok=True)
        return clip

    def _run(self, round_id: str, watchdog: threading.Timer) -> None:
        try:
            rnd = self.store.get(round_id)
        except NotFoundError:
            watchdog.cancel()
            logger.error("Round %s vanished before clip preparation", round_id)
            return
        if rnd.terminal:
            logger.info("Round %s expired while queued, skipping", round_id)
            return

        scratch = None
        try:
            scratch = self._scratch_dir(round_id)
            clip = self.prepare(rnd.source_ref, rnd.clip_length, scratch)
        except ToolInvocationError as exc:
            logger.warning("Clip preparation failed for round %s: %s", round_id, exc)
            self.store.mark_failed(round_id, str(exc))
            clip = None
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected clip preparation error for round %s", round_id)
            self.store.mark_failed(round_id, f"{type(exc).__name__}: {exc}")
            clip = None
        finally:
            watchdog.cancel()

        if clip is not None and self.store.mark_ready(round_id, str(clip)):
            logger.info("Round %s ready: %s", round_id, clip)
            return
        if scratch is not None:
            shutil.rmtree(scratch, ignore_errors=True)

    def shutdown(self, wait: bool = False) -> None:
        self._pool.shutdown(wait=wait, cancel_futures=True)
