from netatmo_exporter.models import Home, MeasurePoint, Module, ModuleRecord
from netatmo_exporter.state import SnapshotCache


def record(module_id="M1", battery=80, measures=None, home_name="Home"):
    home = Home(id="H1", name=home_name, modules=[Module(id=module_id)])
    return ModuleRecord(
        home=home,
        module=Module(id=module_id, battery_level=battery),
        measures=measures or [],
    )


def test_watermark_initializes_on_first_use():
    cache = SnapshotCache(initial_window=300)

    assert cache.window_start(10_000) == 9_700
    # Subsequent calls do not move it
    assert cache.window_start(20_000) == 9_700


def test_update_creates_entries_and_keeps_latest_point():
    cache = SnapshotCache()
    points = [MeasurePoint(time=100, measured_temperature=19.0), MeasurePoint(time=400, measured_temperature=19.5)]

    measured = cache.update([record(measures=points)], poll_time=500)

    assert measured == 1
    entry = cache.entries["H1"]
    assert entry.modules["M1"].last_measure_point == points[-1]
    assert cache.last_measure == 500


def test_update_replaces_records_but_retains_point_without_measures():
    cache = SnapshotCache()
    point = MeasurePoint(time=100, measured_temperature=19.0)
    cache.update([record(battery=80, measures=[point])], poll_time=500)

    measured = cache.update([record(battery=60, home_name="Renamed")], poll_time=800)

    assert measured == 0
    entry = cache.entries["H1"]
    assert entry.home.name == "Renamed"
    assert entry.modules["M1"].module.battery_level == 60
    assert entry.modules["M1"].last_measure_point == point
    assert cache.last_measure == 500


def test_watermark_is_monotonic_across_polls():
    cache = SnapshotCache(initial_window=300)
    now = 10_000
    cache.window_start(now)
    seen = [cache.last_measure]

    for i in range(1, 6):
        now += 300
        cache.update([record(measures=[MeasurePoint(time=now - 60)])], poll_time=now)
        seen.append(cache.last_measure)

    assert seen == sorted(seen)
    assert cache.last_measure == now


def test_watermark_unchanged_without_measurements():
    cache = SnapshotCache()
    cache.update([record(measures=[MeasurePoint(time=100)])], poll_time=1_000)

    cache.update([record(), record(module_id="M2")], poll_time=2_000)

    assert cache.last_measure == 1_000


def test_watermark_never_rewinds():
    cache = SnapshotCache()
    cache.update([record(measures=[MeasurePoint(time=100)])], poll_time=2_000)

    cache.update([record(measures=[MeasurePoint(time=50)])], poll_time=1_000)

    assert cache.last_measure == 2_000


def test_entries_survive_polls_that_do_not_mention_them():
    cache = SnapshotCache()
    cache.update([record(module_id="M1"), record(module_id="M2")], poll_time=1_000)

    cache.update([record(module_id="M1")], poll_time=2_000)

    assert set(cache.entries["H1"].modules) == {"M1", "M2"}
    assert cache.module_count() == 2


def test_update_homes_tracks_homes_without_modules():
    cache = SnapshotCache()
    cache.update([record()], poll_time=1_000)

    cache.update_homes([Home(id="H1", name="Renamed"), Home(id="H2", name="Cottage")])

    assert set(cache.entries) == {"H1", "H2"}
    assert cache.entries["H1"].home.name == "Renamed"
    assert set(cache.entries["H1"].modules) == {"M1"}
    assert cache.entries["H2"].modules == {}
    assert cache.module_count() == 1
