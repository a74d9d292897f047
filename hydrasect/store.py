"""Persisted snapshot of the commits Hydra has evaluated.

The snapshot is a text file with one ``<commit> <eval id>`` line per
evaluated commit. It is only ever replaced as a whole: the new content is
written to an anonymous file in the same directory and renamed over the old
one, so readers see either the old or the new snapshot, and a writer that
dies before the rename leaves nothing behind.
"""

import errno
import logging
import os
import tempfile
import time
from typing import Dict, Iterable, List, Optional, Set, Union

from .errors import CorruptHistoryError, HistoryAccessError
from .models import EvaluationRecord, normalize_commit


class EvaluationStore:
    """Load and atomically replace the evaluation snapshot at ``path``."""

    def __init__(self, path: str, logger: Optional[logging.Logger] = None):
        self.path = path
        self.logger = logger or logging.getLogger("hydrasect")

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def load(self) -> Set[str]:
        """Read the snapshot as a set of commit hashes.

        A missing file is an empty snapshot (nothing scraped yet).

        Raises:
            CorruptHistoryError: If any line cannot be parsed.
        """
        return {record.commit for record in self.records()}

    def records(self) -> List[EvaluationRecord]:
        """Read every evaluation record in the snapshot.

        Raises:
            CorruptHistoryError: If any line cannot be parsed.
            HistoryAccessError: If the file exists but cannot be read.
        """
        try:
            with open(self.path, 'r', encoding='ascii', newline='\n') as f:
                content = f.read()
        except FileNotFoundError:
            self.logger.debug(f"No evaluation history at {self.path}")
            return []
        except UnicodeDecodeError:
            raise CorruptHistoryError(self.path, 0, "<non-ascii content>")
        except OSError as e:
            raise HistoryAccessError(self.path, e)

        if content and not content.endswith("\n"):
            # Every complete snapshot ends with a newline.
            lines = content.split("\n")
            raise CorruptHistoryError(self.path, len(lines), lines[-1])

        records = []
        for number, line in enumerate(content.split("\n"), start=1):
            if not line.strip():
                continue
            records.append(self._parse_line(number, line))
        return records

    def _parse_line(self, number: int, line: str) -> EvaluationRecord:
        fields = line.split()
        if len(fields) > 2:
            raise CorruptHistoryError(self.path, number, line)
        try:
            commit = normalize_commit(fields[0])
            eval_id = int(fields[1]) if len(fields) == 2 else None
        except ValueError:
            raise CorruptHistoryError(self.path, number, line)
        return EvaluationRecord(commit, eval_id)

    def latest(
        self, records: Optional[List[EvaluationRecord]] = None
    ) -> Optional[EvaluationRecord]:
        """Return the most recent evaluation, by Hydra evaluation id.

        Args:
            records: Records already read from this store. The file is read
                again when omitted.
        """
        if records is None:
            records = self.records()
        numbered = [r for r in records if r.eval_id is not None]
        if not numbered:
            return None
        return max(numbered, key=lambda r: r.eval_id)

    def age(self) -> Optional[float]:
        """Seconds since the snapshot was last replaced, or None if absent."""
        try:
            mtime = os.stat(self.path).st_mtime
        except FileNotFoundError:
            return None
        except OSError as e:
            raise HistoryAccessError(self.path, e)
        return max(0.0, time.time() - mtime)

    def replace(self, snapshot: Iterable[Union[EvaluationRecord, str]]) -> int:
        """Atomically replace the snapshot with ``snapshot``.

        Args:
            snapshot: Evaluation records or bare commit hashes. Duplicate
                commits collapse into one line carrying the highest eval id.

        Returns:
            Number of distinct commits written.
        """
        data = self.serialize(snapshot)
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        fd = _open_anonymous(directory)
        if fd is None or not self._replace_anonymous(fd, directory, data):
            self.logger.debug("Anonymous files unavailable, using a named temporary file")
            self._replace_named(directory, data)

        _fsync_directory(directory)
        count = data.count(b"\n")
        self.logger.debug(f"Published {count} commits to {self.path}")
        return count

    @staticmethod
    def serialize(snapshot: Iterable[Union[EvaluationRecord, str]]) -> bytes:
        """Render a snapshot in its on-disk form, sorted by commit hash."""
        merged: Dict[str, Optional[int]] = {}
        for item in snapshot:
            if isinstance(item, str):
                item = EvaluationRecord(normalize_commit(item))
            previous = merged.get(item.commit)
            if item.commit not in merged or (
                item.eval_id is not None
                and (previous is None or item.eval_id > previous)
            ):
                merged[item.commit] = item.eval_id
        lines = [
            EvaluationRecord(commit, merged[commit]).to_line()
            for commit in sorted(merged)
        ]
        return "".join(lines).encode("ascii")

    def _replace_anonymous(self, fd: int, directory: str, data: bytes) -> bool:
        """Write ``data`` to the unnamed file ``fd`` and rename it into place.

        Returns False, leaving the snapshot untouched, when the unnamed file
        cannot be given a name (no /proc, or linking refused).
        """
        staging = os.path.join(
            directory, f".{os.path.basename(self.path)}.{os.getpid()}.new"
        )
        try:
            _write_all(fd, data)
            os.fsync(fd)
            # Left over from a writer that died between link and rename.
            _unlink_quietly(staging)
            try:
                os.link(f"/proc/self/fd/{fd}", staging, follow_symlinks=True)
            except OSError as e:
                if e.errno in (errno.ENOENT, errno.EPERM, errno.EACCES, errno.EXDEV):
                    return False
                raise
        finally:
            os.close(fd)
        try:
            os.replace(staging, self.path)
        except OSError:
            _unlink_quietly(staging)
            raise
        return True

    def _replace_named(self, directory: str, data: bytes):
        fd, tmp_path = tempfile.mkstemp(
            dir=directory, prefix=f".{os.path.basename(self.path)}.", suffix=".tmp"
        )
        try:
            try:
                _write_all(fd, data)
                os.fchmod(fd, 0o644)
                os.fsync(fd)
            finally:
                os.close(fd)
            os.replace(tmp_path, self.path)
        except BaseException:
            _unlink_quietly(tmp_path)
            raise


def _open_anonymous(directory: str) -> Optional[int]:
    """Open an unnamed file in ``directory``, or None if unsupported."""
    flag = getattr(os, "O_TMPFILE", None)
    if flag is None:
        return None
    try:
        return os.open(directory, flag | os.O_WRONLY, 0o644)
    except OSError as e:
        if e.errno in (errno.EOPNOTSUPP, errno.EISDIR, errno.EINVAL):
            return None
        raise


def _write_all(fd: int, data: bytes):
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


def _fsync_directory(directory: str):
    """Persist the rename. Filesystems that cannot sync directories say EINVAL."""
    dir_fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(dir_fd)
    except OSError as e:
        if e.errno != errno.EINVAL:
            raise
    finally:
        os.close(dir_fd)


def _unlink_quietly(path: str):
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
