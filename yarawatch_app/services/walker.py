import logging
import os
import stat
from pathlib import Path
from threading import Event
from typing import Iterator, Optional, Set, Tuple

from yarawatch_core.config import Configuration
from yarawatch_core.models import ScanCandidate

logger = logging.getLogger(__name__)


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


class Walker:
    """
    Lazy, restartable traversal of the configured scan roots.

    Every iteration is a fresh depth-first walk; `skipped` counts the
    entries the filter rules rejected during the latest one.
    """

    def __init__(self, config: Configuration, stop: Optional[Event] = None):
        self.config = config
        self.stop = stop
        self.skipped = 0

    def __iter__(self) -> Iterator[ScanCandidate]:
        self.skipped = 0
        visited: Set[Tuple[int, int]] = set()
        for root in self.config.scan_roots:
            if self._stopped():
                return
            logger.info("Scanning directory %s...", root)
            yield from self._walk_root(str(root), visited)
        logger.debug("Finished traversing directories")

    # ---------------------------
    # Filters
    # ---------------------------

    def _stopped(self) -> bool:
        return self.stop is not None and self.stop.is_set()

    def _rejects(self, name: str, path: str) -> bool:
        if self.config.skip_hidden and _is_hidden(name):
            logger.debug("Skipping path %s: name starts with dot", path)
            return True
        if self.config.is_excluded(path):
            logger.debug("Skipping path %s: matches an exclude pattern", path)
            return True
        return False

    def _too_large(self, path: str, size: int) -> bool:
        limit = self.config.skip_larger_than
        if limit is not None and size > limit:
            logger.debug("Skipping path %s: size exceeds limit (%d)", path, size)
            return True
        return False

    # ---------------------------
    # Traversal
    # ---------------------------

    def _walk_root(self, root: str, visited: Set[Tuple[int, int]]) -> Iterator[ScanCandidate]:
        follow = self.config.follow_symlinks
        # configured roots are always resolved; the symlink policy applies below them
        try:
            st = os.stat(root)
        except OSError as e:
            logger.warning("Scan root %s is not accessible: %s", root, e)
            return

        name = os.path.basename(root.rstrip(os.sep)) or root
        if stat.S_ISDIR(st.st_mode):
            if self._rejects(name, root):
                self.skipped += 1
                return
            stack = [root]
        elif stat.S_ISREG(st.st_mode):
            if self._rejects(name, root) or self._too_large(root, st.st_size):
                self.skipped += 1
                return
            yield ScanCandidate(Path(root), st.st_size, st.st_mtime)
            return
        else:
            logger.warning("Scan root %s is not a regular file or directory", root)
            return

        while stack:
            if self._stopped():
                return
            directory = stack.pop()
            try:
                dst = os.stat(directory)
            except OSError as e:
                logger.debug("Vanished directory %s: %s", directory, e)
                continue
            key = (dst.st_dev, dst.st_ino)
            if key in visited:
                logger.debug("Skipping directory %s: already visited", directory)
                continue
            visited.add(key)
            logger.debug("Traversing directory: %s", directory)

            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                logger.debug("Failed to read directory %s: %s", directory, e)
                continue

            subdirs = []
            for entry in entries:
                if self._stopped():
                    return
                try:
                    candidate = self._visit(entry, follow, subdirs)
                except OSError as e:
                    logger.debug("Failed to inspect %s: %s", entry.path, e)
                    continue
                if candidate is not None:
                    yield candidate
            # reversed so the stack pops them in name order
            stack.extend(reversed(subdirs))

    def _visit(self, entry: os.DirEntry, follow: bool, subdirs: list) -> Optional[ScanCandidate]:
        path = entry.path
        if entry.is_symlink() and not follow:
            logger.debug("Skipping symlink: %s", path)
            return None
        if entry.is_dir(follow_symlinks=follow):
            if self._rejects(entry.name, path):
                self.skipped += 1
            else:
                subdirs.append(path)
            return None
        if not entry.is_file(follow_symlinks=follow):
            return None
        if self._rejects(entry.name, path):
            self.skipped += 1
            return None
        st = entry.stat(follow_symlinks=follow)
        if self._too_large(path, st.st_size):
            self.skipped += 1
            return None
        return ScanCandidate(Path(path), st.st_size, st.st_mtime)
