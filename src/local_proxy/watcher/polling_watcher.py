"""
Polling change source and dispatcher.

PollingChangeSource scans the local tree at a fixed interval and reports the
files created, modified or deleted since the previous scan. ChangeDispatcher
drains any ChangeSource and forwards every event to the reload notifier.
"""

import asyncio
import logging
import os
from typing import Dict, List, Optional, Sequence, Tuple

from local_proxy.contracts import ChangeSource, ReloadNotifier
from local_proxy.domain import ChangeEvent, ChangeKind
from local_proxy.matcher.file_enumerator import enumerate_files

# Module logger
logger = logging.getLogger(__name__)

# (mtime_ns, size) per root-relative path
Snapshot = Dict[str, Tuple[int, int]]


def diff_snapshots(before: Snapshot, after: Snapshot) -> List[ChangeEvent]:
    """
    Compares two snapshots of the tree.

    Returns:
        List[ChangeEvent]: Created and modified files in scan order, then deleted files.
    """
    events: List[ChangeEvent] = []
    for path, stamp in after.items():
        previous = before.get(path)
        if previous is None:
            events.append(ChangeEvent(path, ChangeKind.CREATED))
        elif previous != stamp:
            events.append(ChangeEvent(path, ChangeKind.MODIFIED))
    for path in before:
        if path not in after:
            events.append(ChangeEvent(path, ChangeKind.DELETED))
    return events


class PollingChangeSource(ChangeSource):
    """
    A ChangeSource based on periodic modification-time scans.

    Each scan re-enumerates the matching files, so files created after startup
    are picked up as well.
    """

    def __init__(
        self,
        root: str,
        pattern: str,
        ignore: Sequence[str] = (),
        interval: float = 0.5,
    ) -> None:
        self._root: str = root
        self._pattern: str = pattern
        self._ignore: Sequence[str] = ignore
        self._interval: float = interval
        self._snapshot: Snapshot = {}
        self._stopped: asyncio.Event = asyncio.Event()

    def scan(self, files: Optional[List[str]] = None) -> Snapshot:
        """
        Stats every matching file. Files vanishing during the scan are skipped.

        Args:
            files: Root-relative paths to stat; enumerated from disk when None.
        """
        if files is None:
            files = enumerate_files(self._root, self._pattern, self._ignore)
        snapshot: Snapshot = {}
        for relative in files:
            try:
                stat = os.stat(os.path.join(self._root, *relative.split("/")))
            except OSError:
                continue
            snapshot[relative] = (stat.st_mtime_ns, stat.st_size)
        return snapshot

    async def start(self, files: Optional[List[str]] = None) -> None:
        """
        Takes the initial snapshot, optionally from an already enumerated list.
        """
        self._stopped.clear()
        self._snapshot = await asyncio.to_thread(self.scan, files)
        logger.debug(f"Watching {len(self._snapshot)} files under {self._root}")

    async def stop(self) -> None:
        self._stopped.set()

    async def __anext__(self) -> List[ChangeEvent]:
        while not self._stopped.is_set():
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                current = await asyncio.to_thread(self.scan)
            except OSError as e:
                logger.warning(f"Scan of {self._root} failed: {e}")
                continue

            events = diff_snapshots(self._snapshot, current)
            self._snapshot = current
            if events:
                return events

        raise StopAsyncIteration


class ChangeDispatcher:
    """
    Forwards the events of a ChangeSource to a ReloadNotifier until stopped.
    """

    def __init__(self, source: ChangeSource, notifier: ReloadNotifier) -> None:
        self._source: ChangeSource = source
        self._notifier: ReloadNotifier = notifier

    async def run(self) -> None:
        try:
            async for batch in self._source:
                for event in batch:
                    try:
                        await self._notifier.on_change(event)
                    except Exception as e:
                        logger.exception(f"Reload notification failed for {event.path}: {e}")
        except asyncio.CancelledError:
            logger.info("Change dispatcher stopping.")
            raise
