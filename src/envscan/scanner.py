"""Environment scanning engine for envscan."""

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from envscan.emitter import ResultEmitter, ResultSink
from envscan.entities import EntityComparator, EntityError, EntityMatcher, PatternEntity
from envscan.procfs import ProcRoot, ProcessRootError
from envscan.splitter import BUFFER_INCREMENT, EnvironSplitter

logger = logging.getLogger(__name__)

# A pid entity with this value means "the scanning process itself".
SELF_PID = 0


class ScanState(Enum):
    """Where the scanner is in its single pass."""

    INIT = "init"
    ENUMERATING = "enumerating"
    OPENING = "opening"
    SPLITTING = "splitting"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class ScanSummary:
    """Counters describing one finished scan."""

    scanned: int = 0
    matched_pids: int = 0
    collected: int = 0
    not_collected: int = 0
    dropped_records: int = 0


class EnvironmentScanner:
    """
    Scanner that collects matching environment variables of live processes.

    Runs one synchronous pass: enumerate pids, filter them, then read and
    split each matching process's environment stream to completion before
    moving on. Only an unreadable process root aborts the scan; per-process
    failures become ``not collected`` items and malformed records are skipped.
    """

    def __init__(
        self,
        proc_root: ProcRoot,
        sink: ResultSink,
        matcher: EntityMatcher | None = None,
        getpid: Callable[[], int] = os.getpid,
        increment: int = BUFFER_INCREMENT,
    ) -> None:
        """
        Initialize the EnvironmentScanner.

        Args:
            proc_root: Process root to enumerate and read from.
            sink: Receives every result item.
            matcher: Evaluates pid and name entities. Defaults to EntityComparator.
            getpid: Returns the scanner's own pid, for the self-pid sentinel.
            increment: Buffer growth step handed to the splitter.
        """
        self._proc_root = proc_root
        self._sink = sink
        self._emitter = ResultEmitter(sink)
        self._matcher = matcher if matcher is not None else EntityComparator()
        self._getpid = getpid
        self._increment = increment
        self._state = ScanState.INIT

    @property
    def state(self) -> ScanState:
        """Current step of the scan pass."""
        return self._state

    def _enter(self, state: ScanState) -> None:
        logger.debug("Scanner state %s -> %s", self._state.value, state.value)
        self._state = state

    def resolve_pid_entity(self, pid_entity: PatternEntity) -> PatternEntity:
        """Validate the pid entity and substitute the self-pid sentinel."""
        value = pid_entity.value
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise EntityError(f"pid entity needs a non-negative integer, got {value!r}")
        if value == SELF_PID:
            own_pid = self._getpid()
            logger.debug("Rewriting pid sentinel %d to own pid %d", SELF_PID, own_pid)
            return pid_entity.with_value(own_pid)
        return pid_entity

    def resolve_name_entity(self, name_entity: PatternEntity) -> PatternEntity:
        """Validate the name entity before any process is read."""
        if not isinstance(name_entity.value, str):
            raise EntityError(f"name entity needs a string, got {name_entity.value!r}")
        return name_entity

    def scan(
        self,
        pid_entity: PatternEntity | None,
        name_entity: PatternEntity | None,
    ) -> ScanSummary:
        """
        Run one scan pass.

        Raises:
            EntityError: If an entity is missing or invalid.
            ProcessRootError: If the process root cannot be listed.
        """
        if name_entity is None:
            raise EntityError("a name entity is required")
        if pid_entity is None:
            raise EntityError("a pid entity is required")

        pid_entity = self.resolve_pid_entity(pid_entity)
        name_entity = self.resolve_name_entity(name_entity)
        summary = ScanSummary()
        self._emitter = ResultEmitter(self._sink)

        self._enter(ScanState.ENUMERATING)
        try:
            pids = self._proc_root.pids()
        except ProcessRootError:
            self._enter(ScanState.FAILED)
            raise

        for pid in pids:
            summary.scanned += 1
            if not self._matcher.matches(pid_entity, pid):
                continue
            summary.matched_pids += 1
            self._scan_process(pid, name_entity, summary)

        summary.collected = self._emitter.collected_count
        summary.not_collected = self._emitter.not_collected_count
        self._enter(ScanState.DONE)
        logger.info(
            "Scanned %d processes, %d matched: %d variables collected, %d not collected",
            summary.scanned,
            summary.matched_pids,
            summary.collected,
            summary.not_collected,
        )
        return summary

    def _scan_process(self, pid: int, name_entity: PatternEntity, summary: ScanSummary) -> None:
        """Drain one process's environment stream into the emitter."""
        path = self._proc_root.environ_path(pid)

        self._enter(ScanState.OPENING)
        try:
            stream = self._proc_root.open_environ(pid)
        except OSError as exc:
            self._emitter.not_collected(pid, path, exc)
            return

        self._enter(ScanState.SPLITTING)
        with stream:
            splitter = EnvironSplitter(stream, increment=self._increment)
            try:
                for record in splitter.records():
                    if self._matcher.matches(name_entity, record.name):
                        self._emitter.collected(pid, record)
            except OSError as exc:
                # Process exited or revoked access mid-read.
                self._emitter.read_failed(pid, path, exc)
        summary.dropped_records += splitter.dropped
