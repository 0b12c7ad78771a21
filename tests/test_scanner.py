"""Tests for the EnvironmentScanner orchestrator."""

import errno

import pytest

from envscan.emitter import ListSink
from envscan.entities import EntityComparator, EntityError, Operation, PatternEntity
from envscan.models import ItemStatus
from envscan.procfs import ProcessRootError, ProcRoot
from envscan.scanner import SELF_PID, EnvironmentScanner, ScanState


class RecordingMatcher(EntityComparator):
    """Comparator that remembers every candidate it was asked about."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def matches(self, entity, candidate):
        self.calls.append((entity, candidate))
        return super().matches(entity, candidate)


class FlakyRoot(ProcRoot):
    """ProcRoot whose stream for pid 3 fails after the first read."""

    def open_environ(self, pid):
        stream = super().open_environ(pid)
        if pid != 3:
            return stream
        original_read = stream.read
        calls = {"n": 0}

        class Wrapper:
            closed = False

            def read(self, size):
                calls["n"] += 1
                if calls["n"] > 1:
                    raise OSError(errno.ESRCH, "No such process")
                return original_read(size)

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                Wrapper.closed = True
                stream.close()

        self.wrapper = Wrapper
        return Wrapper()


def make_scanner(root, **kwargs):
    kwargs.setdefault("getpid", lambda: 99999)
    sink = ListSink()
    return EnvironmentScanner(ProcRoot(root), sink, **kwargs), sink


class TestScanMatching:
    """Name and pid matching during a scan."""

    def test_exact_name_match(self, proc_tree):
        """PATH=/bin, HOME=/root with name HOME gives exactly HOME=/root."""
        root = proc_tree({1218: b"PATH=/bin\x00HOME=/root\x00"})
        scanner, sink = make_scanner(root)

        scanner.scan(PatternEntity(1218), PatternEntity("HOME"))

        assert [item.to_dict() for item in sink] == [
            {"pid": 1218, "status": "collected", "name": "HOME", "value": "/root"}
        ]

    def test_malformed_record_skipped(self, proc_tree):
        """GARBAGE yields nothing; PATH=/bin is still found."""
        root = proc_tree({1218: b"GARBAGE\x00PATH=/bin\x00"})
        scanner, sink = make_scanner(root)

        summary = scanner.scan(PatternEntity(1218), PatternEntity(".*", Operation.PATTERN_MATCH))

        assert [(i.name, i.value) for i in sink] == [("PATH", "/bin")]
        assert summary.dropped_records == 1

    def test_no_matching_variable(self, proc_tree):
        root = proc_tree({10: b"A=1\x00"})
        scanner, sink = make_scanner(root)

        summary = scanner.scan(PatternEntity(10), PatternEntity("B"))

        assert len(sink) == 0
        assert summary.matched_pids == 1
        assert scanner.state is ScanState.DONE

    def test_pid_filter_applies_before_open(self, proc_tree):
        """Non-matching pids are never opened, even when unreadable."""
        root = proc_tree({10: b"A=1\x00", 11: None, 12: b"A=2\x00"})
        scanner, sink = make_scanner(root)

        summary = scanner.scan(PatternEntity(12), PatternEntity("A"))

        assert [(i.pid, i.value) for i in sink] == [(12, "2")]
        assert summary.scanned == 3
        assert summary.matched_pids == 1
        assert summary.not_collected == 0

    def test_all_processes_with_pattern(self, proc_tree):
        root = proc_tree({
            3: b"LC_ALL=C\x00LANG=en\x00",
            1: b"LC_TIME=C\x00",
            2: b"PATH=/bin\x00",
        })
        scanner, sink = make_scanner(root)

        summary = scanner.scan(
            PatternEntity(SELF_PID, Operation.NOT_EQUAL),
            PatternEntity("^LC_", Operation.PATTERN_MATCH),
        )

        assert [(i.pid, i.name) for i in sink] == [(1, "LC_TIME"), (3, "LC_ALL")]
        assert summary.collected == 2

    def test_each_pid_visited_once(self, proc_tree):
        root = proc_tree({5: b"A=1\x00", 6: b"A=1\x00"})
        matcher = RecordingMatcher()
        scanner, _ = make_scanner(root, matcher=matcher, getpid=lambda: 99)

        scanner.scan(PatternEntity(99, Operation.NOT_EQUAL), PatternEntity("A"))

        pid_candidates = [c for _, c in matcher.calls if isinstance(c, int)]
        assert pid_candidates == [5, 6]

    def test_small_increment_same_result(self, proc_tree):
        data = b"X=" + b"v" * 300 + b"\x00HOME=/home/u\x00"
        root = proc_tree({4: data})
        scanner, sink = make_scanner(root, increment=7)

        scanner.scan(PatternEntity(4), PatternEntity("HOME"))

        assert [i.value for i in sink] == ["/home/u"]


class TestScanFailures:
    """Per-process and scan-level failures."""

    def test_open_failure_emits_one_diagnostic(self, proc_tree):
        """A pid-matching process whose stream can't be opened gives one item."""
        root = proc_tree({7: None, 8: b"A=1\x00"})
        scanner, sink = make_scanner(root)

        summary = scanner.scan(PatternEntity(SELF_PID, Operation.NOT_EQUAL), PatternEntity("A"))

        failed = [i for i in sink if i.pid == 7]
        assert len(failed) == 1
        assert failed[0].status is ItemStatus.NOT_COLLECTED
        assert failed[0].message
        assert str(root / "7" / "environ") in failed[0].message
        assert [(i.pid, i.name) for i in sink.collected()] == [(8, "A")]
        assert summary.not_collected == 1

    def test_empty_stream_is_not_a_failure(self, proc_tree):
        """A zero-byte environ yields nothing and no diagnostic."""
        root = proc_tree({1: b"", 2: b"A=1\x00"})
        scanner, sink = make_scanner(root)

        scanner.scan(PatternEntity(SELF_PID, Operation.NOT_EQUAL), PatternEntity("A"))

        assert [(i.pid, i.status) for i in sink] == [(2, ItemStatus.COLLECTED)]

    def test_read_failure_mid_stream(self, proc_tree):
        root = proc_tree({3: b"A=1\x00B=partial", 4: b"A=2\x00"})
        sink = ListSink()
        proc_root = FlakyRoot(root)
        scanner = EnvironmentScanner(proc_root, sink, getpid=lambda: 99999, increment=4)

        scanner.scan(PatternEntity(SELF_PID, Operation.NOT_EQUAL), PatternEntity("A"))

        assert [(i.pid, i.status) for i in sink] == [
            (3, ItemStatus.COLLECTED),
            (3, ItemStatus.NOT_COLLECTED),
            (4, ItemStatus.COLLECTED),
        ]
        assert "Can't read" in sink.not_collected()[0].message
        assert proc_root.wrapper.closed

    def test_unreadable_root_aborts(self, tmp_path):
        scanner, sink = make_scanner(tmp_path / "missing")

        with pytest.raises(ProcessRootError):
            scanner.scan(PatternEntity(1), PatternEntity("A"))

        assert len(sink) == 0
        assert scanner.state is ScanState.FAILED

    def test_missing_entities(self, tmp_path):
        scanner, _ = make_scanner(tmp_path)
        with pytest.raises(EntityError):
            scanner.scan(PatternEntity(1), None)
        with pytest.raises(EntityError):
            scanner.scan(None, PatternEntity("A"))

    def test_non_string_name_entity_fails_before_reading(self, proc_tree):
        """A name entity that can never match a string is rejected up front."""
        root = proc_tree({1: b"A=1\x00", 2: None})
        opened = []

        class CountingRoot(ProcRoot):
            def open_environ(self, pid):
                opened.append(pid)
                return super().open_environ(pid)

        sink = ListSink()
        scanner = EnvironmentScanner(CountingRoot(root), sink, getpid=lambda: 99999)

        with pytest.raises(EntityError):
            scanner.scan(
                PatternEntity(SELF_PID, Operation.NOT_EQUAL),
                PatternEntity(5, Operation.GREATER_THAN),
            )

        assert len(sink) == 0
        assert opened == []
        assert scanner.state is ScanState.INIT

    @pytest.mark.parametrize("value", [-1, "1"])
    def test_invalid_pid_entity(self, tmp_path, value):
        scanner, _ = make_scanner(tmp_path)
        with pytest.raises(EntityError):
            scanner.scan(PatternEntity(value), PatternEntity("A"))


class TestSelfPidSentinel:
    """The pid value 0 stands for the scanner's own pid."""

    def test_sentinel_rewritten_to_own_pid(self, proc_tree):
        root = proc_tree({500: b"ME=yes\x00", 501: b"ME=no\x00"})
        scanner, sink = make_scanner(root, getpid=lambda: 500)

        scanner.scan(PatternEntity(SELF_PID), PatternEntity("ME"))

        assert [(i.pid, i.value) for i in sink] == [(500, "yes")]

    def test_sentinel_resolved_once_per_scan(self, proc_tree):
        root = proc_tree({pid: b"A=1\x00" for pid in range(1, 11)})
        calls = []

        def getpid():
            calls.append(1)
            return 4

        scanner, sink = make_scanner(root, getpid=getpid)
        scanner.scan(PatternEntity(SELF_PID), PatternEntity("A"))

        assert len(calls) == 1
        assert [i.pid for i in sink] == [4]

    def test_rewritten_entity_used_by_matcher(self, proc_tree):
        root = proc_tree({1: b"", 2: b""})
        matcher = RecordingMatcher()
        scanner, _ = make_scanner(root, matcher=matcher, getpid=lambda: 2)

        scanner.scan(PatternEntity(SELF_PID), PatternEntity("A"))

        assert {entity.value for entity, c in matcher.calls if isinstance(c, int)} == {2}

    def test_non_sentinel_untouched(self, tmp_path):
        scanner, _ = make_scanner(tmp_path, getpid=lambda: pytest.fail("getpid called"))
        entity = PatternEntity(77)
        assert scanner.resolve_pid_entity(entity) is entity
