"""
Parallel upload of a packaged output tree.

A single walker thread feeds a bounded queue; a fixed pool of worker threads
drains it. Failures never stop the walk or the pool: they are collected and
returned together with the number of files that did make it.
"""
import logging
import os
import queue
import threading
from dataclasses import dataclass
from pathlib import Path

from .exceptions import UploadError

logger = logging.getLogger(__name__)

MAX_DEFAULT_WORKERS = 32

CONTENT_TYPES = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".mp4": "video/mp4",
    ".m4s": "video/iso.segment",
    ".m4a": "audio/mp4",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(path) -> str:
    return CONTENT_TYPES.get(Path(path).suffix.lower(), DEFAULT_CONTENT_TYPE)


def default_worker_count() -> int:
    return max(1, min(os.cpu_count() or 1, MAX_DEFAULT_WORKERS))


@dataclass(frozen=True)
class UploadTask:
    local_path: Path
    key: str


_STOP = object()


class UploadManager:
    def __init__(self, client, user_id: str, asset_id: str,
                 max_workers: int | None = None, buffer_size: int = 1000):
        self.client = client
        self.user_id = user_id
        self.asset_id = asset_id
        self.max_workers = max_workers or default_worker_count()
        self.buffer_size = max(1, buffer_size)

        self._lock = threading.Lock()
        self._uploaded = 0
        self._failures: list[tuple[str, str]] = []

    def key_for(self, relative_path) -> str:
        rel = Path(relative_path).as_posix()
        return f"{self.user_id}/{self.asset_id}/{rel}"

    def upload_all(self, local_root) -> tuple[int, UploadError | None]:
        """
        Upload every regular file under local_root.

        Returns (uploaded_count, error). error is None only if every file
        was walked and uploaded without a problem.
        """
        root = Path(local_root)
        with self._lock:
            self._uploaded = 0
            self._failures = []

        tasks: queue.Queue = queue.Queue(maxsize=self.buffer_size)
        workers = [
            threading.Thread(target=self._worker, args=(tasks,), name=f"upload-{i}", daemon=True)
            for i in range(self.max_workers)
        ]
        for w in workers:
            w.start()

        walker = threading.Thread(target=self._walk, args=(root, tasks), name="upload-walk", daemon=True)
        walker.start()

        walker.join()
        for w in workers:
            w.join()

        with self._lock:
            count, failures = self._uploaded, list(self._failures)

        if failures:
            logger.warning("Uploaded %d files from %s with %d failures", count, root, len(failures))
            return count, UploadError(failures)
        logger.info("Uploaded %d files from %s", count, root)
        return count, None

    def _fail(self, path, message: str):
        with self._lock:
            self._failures.append((str(path), message))

    def _walk(self, root: Path, tasks: queue.Queue):
        try:
            if not root.is_dir():
                self._fail(root, "walk error: not a directory")
                return

            def onerror(err: OSError):
                self._fail(err.filename or root, f"walk error: {err}")

            for dirpath, _dirnames, filenames in os.walk(root, onerror=onerror):
                for name in sorted(filenames):
                    path = Path(dirpath) / name
                    if not path.is_file():
                        continue
                    tasks.put(UploadTask(path, self.key_for(path.relative_to(root))))
        except Exception as e:
            logger.exception("Directory walk of %s aborted", root)
            self._fail(root, f"walk error: {e}")
        finally:
            # one sentinel per worker closes the queue
            for _ in range(self.max_workers):
                tasks.put(_STOP)

    def _worker(self, tasks: queue.Queue):
        while True:
            item = tasks.get()
            if item is _STOP:
                return
            try:
                data = item.local_path.read_bytes()
            except OSError as e:
                self._fail(item.local_path, f"failed to read file: {e}")
                continue
            try:
                self.client.upload(item.key, data, content_type_for(item.local_path))
            except Exception as e:
                self._fail(item.local_path, f"failed to upload to {item.key}: {e}")
                continue
            with self._lock:
                self._uploaded += 1
