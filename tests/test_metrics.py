import pytest

from FixtureSeed import metrics


def test_entity_counts_kept_beside_totals():
    metrics.inc_counter("fixtures.rows.imported", entity="Employee")
    metrics.inc_counter("fixtures.rows.imported", 2, entity="Organisation")
    metrics.inc_counter("fixtures.rows.imported")
    assert metrics.get_counter("fixtures.rows.imported") == 4
    assert metrics.get_counter("fixtures.rows.imported.Employee") == 1
    assert metrics.get_counter("fixtures.rows.imported.Organisation") == 2
    assert metrics.get_counter("fixtures.rows.imported.Missing") == 0


def test_histogram_buckets_and_overflow():
    metrics.observe_histogram("t", 10)
    metrics.observe_histogram("t", 11)
    metrics.observe_histogram("t", 20000)
    counters = metrics.get_counters("histo.t")
    assert counters["histo.t.le_10"] == 1
    assert counters["histo.t.le_50"] == 1
    assert counters["histo.t.gt_10000"] == 1
    assert counters["histo.t.count"] == 3
    assert counters["histo.t.sum"] == 20021


def test_timed_observes_even_when_block_raises():
    with pytest.raises(RuntimeError):
        with metrics.timed("fixtures.import.duration_ms"):
            raise RuntimeError("boom")
    assert metrics.get_counters()["histo.fixtures.import.duration_ms.count"] == 1


def test_reset_clears_everything():
    metrics.inc_counter("a")
    metrics.observe_histogram("b", 1)
    metrics.reset_counters()
    assert metrics.get_counters() == {}
