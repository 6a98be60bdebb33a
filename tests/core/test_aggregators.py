from __future__ import annotations

import random
import threading
from datetime import UTC, datetime

from mcp_log_console.core.aggregators import (
    CollapseStore,
    LogAggregator,
    PendingQueue,
    RawStore,
    RecordStore,
    SmartStore,
)
from mcp_log_console.core.event_source import parse_events
from mcp_log_console.core.filters import SilenceFilter
from mcp_log_console.core.models import RawEvent, Severity


def _started(store: RecordStore, *, max_records: int = 300, silence=None) -> LogAggregator:
    agg = LogAggregator(store, name="test", max_records=max_records, silence=silence)
    agg.start_capture()
    return agg


def _feed(agg: LogAggregator, events) -> bool:
    for e in events:
        agg.submit(e)
    return agg.flush()


def test_raw_keeps_every_event_newest_first(make_event) -> None:
    agg = _started(RawStore())
    events = [make_event(message="x") for _ in range(3)]

    _feed(agg, events)

    assert [r.id for r in agg.records()] == [3, 2, 1]
    assert all(r.merged_count == 1 for r in agg.records())
    assert agg.counters.info == 3


def test_collapse_merges_consecutive_run(make_event) -> None:
    agg = _started(CollapseStore())
    run = [make_event(Severity.WARNING, "Physics", "NaN", seconds=s) for s in (3, 1, 5, 2)]

    _feed(agg, run)

    [group] = agg.records()
    assert group.merged_count == 4
    assert group.timestamp == max(e.timestamp for e in run)
    assert agg.counters.warning == 1


def test_collapse_only_merges_adjacent(make_event) -> None:
    agg = _started(CollapseStore())

    _feed(agg, [make_event(message=m) for m in ("a", "a", "b", "a")])

    assert [(r.message, r.merged_count) for r in agg.records()] == [("a", 1), ("b", 1), ("a", 2)]
    assert agg.counters.info == 3


def test_smart_merges_anywhere_and_moves_to_front(make_event) -> None:
    agg = _started(SmartStore())

    _feed(agg, [make_event(message=m) for m in ("a", "b", "a", "c", "a")])

    records = agg.records()
    assert [(r.message, r.merged_count) for r in records] == [("a", 3), ("c", 1), ("b", 1)]
    assert records[0].last_id == 5
    assert records[0].timestamp == max(r.timestamp for r in records)
    assert agg.counters.info == 3


def test_stack_trace_difference_prevents_merge(make_event) -> None:
    agg = _started(SmartStore())

    _feed(
        agg,
        [
            make_event(Severity.EXCEPTION, "A", "boom", stack_trace="at f()"),
            make_event(Severity.EXCEPTION, "A", "boom", stack_trace="at g()"),
        ],
    )

    assert len(agg.records()) == 2
    assert agg.counters.exception == 2


def test_capacity_evicts_oldest_and_decrements_once(make_event) -> None:
    agg = _started(CollapseStore(), max_records=3)
    first = [make_event(Severity.ERROR, "A", "first") for _ in range(5)]
    _feed(agg, first)
    _feed(agg, [make_event(message=m) for m in ("b", "c")])
    assert agg.counters.error == 1

    _feed(agg, [make_event(message="d")])

    assert [r.message for r in agg.records()] == ["d", "c", "b"]
    assert agg.counters.error == 0
    assert agg.counters.info == 3


def test_smart_eviction_drops_index_entry(make_event) -> None:
    agg = _started(SmartStore(), max_records=2)

    _feed(agg, [make_event(message=m) for m in ("a", "b", "c")])
    _feed(agg, [make_event(message="a")])

    assert [(r.message, r.merged_count) for r in agg.records()] == [("a", 1), ("c", 1)]
    assert agg.counters.total == 2


def test_smart_touched_group_survives_eviction(make_event) -> None:
    agg = _started(SmartStore(), max_records=2)

    _feed(agg, [make_event(message=m) for m in ("a", "b", "a", "c")])

    assert [r.message for r in agg.records()] == ["c", "a"]


def test_counters_match_group_count(make_event) -> None:
    rng = random.Random(7)
    severities = list(Severity)
    for store in (RawStore(), CollapseStore(), SmartStore()):
        agg = _started(store, max_records=10)
        for _ in range(20):
            batch = [
                make_event(rng.choice(severities), "S", rng.choice("abcdefghijklmnop"))
                for _ in range(rng.randint(1, 15))
            ]
            _feed(agg, batch)
            assert agg.counters.total == len(agg.records()) <= 10
            for sev in severities:
                assert agg.counters.get(sev) == sum(r.severity is sev for r in agg.records())


def test_flush_is_idempotent(make_event) -> None:
    agg = _started(SmartStore())
    agg.submit(make_event())

    assert agg.flush() is True
    assert agg.flush() is False


def test_events_ignored_while_stopped(make_event) -> None:
    agg = LogAggregator(RawStore(), name="test")
    agg.submit(make_event())

    assert agg.flush() is False
    assert agg.records() == []


def test_stop_capture_flushes_pending(make_event) -> None:
    agg = _started(RawStore())
    agg.submit(make_event())

    agg.stop_capture()

    assert not agg.is_capturing
    assert len(agg.records()) == 1
    agg.submit(make_event())
    assert agg.pending_count == 0


def test_filtered_events_never_reach_counters(make_event) -> None:
    silence = SilenceFilter(prefixes=["Noise."])
    agg = _started(SmartStore(), silence=silence)

    _feed(agg, [make_event(source="Noise.Tick"), make_event(source="App")])

    assert [r.source for r in agg.records()] == ["App"]
    assert agg.counters.total == 1


def test_update_filter_purges_silenced_groups(make_event) -> None:
    silence = SilenceFilter()
    agg = _started(CollapseStore(), silence=silence)
    _feed(agg, [make_event(source=s) for s in ("A", "A", "B", "A")])

    silence.add_source("A")
    purged = agg.update_filter()

    assert purged == 2
    assert [r.source for r in agg.records()] == ["B"]
    assert agg.counters.total == 1


def test_clear_all_resets_counters(make_event) -> None:
    agg = _started(SmartStore())
    _feed(agg, [make_event(Severity.ERROR, message="x")])

    agg.clear_all()

    assert agg.records() == []
    assert agg.counters.total == 0


def test_find_matches_first_or_last_id(make_event) -> None:
    agg = _started(SmartStore())
    _feed(agg, [make_event(message="x"), make_event(message="x")])

    assert agg.find(1) is agg.find(2)
    assert agg.find(99) is None


def test_pending_queue_handles_concurrent_producer(make_event) -> None:
    queue = PendingQueue()
    events = [make_event() for _ in range(2000)]
    drained = []

    producer = threading.Thread(target=lambda: [queue.put(e) for e in events])
    producer.start()
    while producer.is_alive():
        drained.extend(queue.drain())
    producer.join()
    drained.extend(queue.drain())

    assert [e.id for e in drained] == [e.id for e in events]


def test_naive_and_aware_timestamps_merge(make_event) -> None:
    agg = _started(SmartStore())
    naive = RawEvent(
        id=1,
        timestamp=datetime(2025, 1, 1, 8, 0, 0),
        severity=Severity.ERROR,
        source="Host",
        message="disk slow",
    )
    [aware] = parse_events(
        [
            {
                "id": 2,
                "timestamp": "2025-01-01T09:00:00Z",
                "severity": "error",
                "source": "Host",
                "message": "disk slow",
            }
        ]
    )
    agg.submit(naive)
    agg.submit(aware)
    agg.submit(make_event(Severity.WARNING, "Host", "after"))

    assert agg.flush() is True

    assert [(r.message, r.merged_count) for r in agg.records()] == [
        ("after", 1),
        ("disk slow", 2),
    ]
    assert agg.records()[1].timestamp == datetime(2025, 1, 1, 9, 0, 0, tzinfo=UTC)
    assert agg.counters.total == 2
