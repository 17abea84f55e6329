from prometheus_client import CollectorRegistry, generate_latest

from netatmo_exporter.metrics import MODULE_LABELS, ROOM_LABELS, SnapshotCollector, render
from netatmo_exporter.models import Home, MeasurePoint, Module, ModuleRecord, Room
from netatmo_exporter.state import SnapshotCache


def populated_cache():
    home = Home(
        id="H1",
        name="Maison",
        country="FR",
        altitude=120,
        coordinates=[48.0, 2.0],
        rooms=[Room(id="R1", reachable=True, open_window=False,
                    therm_measured_temperature=20.5, therm_setpoint_temperature=21.0)],
        modules=[Module(id="M1")],
    )
    module = Module(id="M1", type="NATherm1", bridge="B1", room_id="R1", battery_level=80,
                    reachable=True, boiler_status=True, rf_strength=60, wifi_strength=0,
                    firmware_revision=65)
    cache = SnapshotCache()
    cache.update([ModuleRecord(home=home, module=module, measures=[
        MeasurePoint(time=600, sum_boiler_on=120, sum_boiler_off=180,
                     measured_temperature=20.0, setpoint_temperature=20.0),
    ])], poll_time=1_000)
    return cache


def samples_by_name(families):
    out = {}
    for family in families:
        for sample in family.samples:
            out.setdefault(sample.name, []).append(sample)
    return out


def test_failed_pass_renders_only_up():
    families = render(populated_cache(), up=False)

    samples = [s for f in families for s in f.samples]
    assert len(samples) == 1
    assert samples[0].name == "netatmo_up"
    assert samples[0].value == 0.0


def test_up_is_first_family():
    families = render(populated_cache(), up=True)

    assert families[0].name == "netatmo_up"
    assert families[0].samples[0].value == 1.0


def test_module_gauges_have_no_timestamp():
    samples = samples_by_name(render(populated_cache(), up=True))

    battery = samples["netatmo_module_battery_level"][0]
    assert battery.value == 80
    assert battery.timestamp is None
    assert samples["netatmo_module_boiler_status"][0].value == 1.0
    assert samples["netatmo_module_reachable"][0].value == 1.0
    assert samples["netatmo_module_firmware_revision"][0].value == 65
    assert battery.labels == {
        "home_id": "H1",
        "home_name": "Maison",
        "home_country": "FR",
        "home_altitude": "120",
        "home_lat": "48.00000000",
        "home_long": "2.00000000",
        "room_id": "R1",
        "bridge": "B1",
        "module": "M1",
        "type": "NATherm1",
    }
    assert list(battery.labels) == MODULE_LABELS


def test_measurement_gauges_carry_sample_timestamp():
    samples = samples_by_name(render(populated_cache(), up=True))

    for name, value in [
        ("netatmo_module_temperature", 20.0),
        ("netatmo_module_sp_temperature", 20.0),
        ("netatmo_module_sum_boiler_on", 120),
        ("netatmo_module_sum_boiler_off", 180),
    ]:
        sample = samples[name][0]
        assert sample.value == value
        assert sample.timestamp == 600


def test_module_without_measurement_has_no_measurement_samples():
    cache = SnapshotCache()
    cache.update([ModuleRecord(home=Home(id="H1"), module=Module(id="M1"))], poll_time=1_000)

    samples = samples_by_name(render(cache, up=True))

    assert "netatmo_module_battery_level" in samples
    assert "netatmo_module_temperature" not in samples


def test_room_gauges():
    samples = samples_by_name(render(populated_cache(), up=True))

    temperature = samples["netatmo_room_temperature"][0]
    assert temperature.value == 20.5
    assert list(temperature.labels) == ROOM_LABELS
    assert temperature.labels["room_id"] == "R1"
    assert samples["netatmo_room_sp_temperature"][0].value == 21.0
    assert samples["netatmo_room_reachable"][0].value == 1.0
    assert samples["netatmo_room_open_window"][0].value == 0.0


def test_missing_coordinates_render_empty_labels():
    cache = SnapshotCache()
    cache.update([ModuleRecord(home=Home(id="H1"), module=Module(id="M1"))], poll_time=1_000)

    sample = samples_by_name(render(cache, up=True))["netatmo_module_battery_level"][0]

    assert sample.labels["home_lat"] == ""
    assert sample.labels["home_long"] == ""


class ExporterStub:
    def __init__(self, cache, up):
        self.cache = cache
        self.up = up


def test_collector_exposition_includes_timestamps_in_milliseconds():
    registry = CollectorRegistry()
    registry.register(SnapshotCollector(ExporterStub(populated_cache(), True)))

    text = generate_latest(registry).decode()

    assert "netatmo_up 1.0" in text
    temperature_lines = [line for line in text.splitlines() if line.startswith("netatmo_module_temperature{")]
    assert len(temperature_lines) == 1
    assert temperature_lines[0].endswith(" 20.0 600000")
