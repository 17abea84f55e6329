from netatmo_exporter.measure import MEASURE_TYPES, parse_measure_points
from netatmo_exporter.models import MeasurePoint


def test_row_timestamps_follow_begin_and_step():
    records = [{
        "beg_time": 1000,
        "step_time": 300,
        "value": [[10, 290, 20.0, 20.0], [0, 300, 20.5, 20.5], [300, 0, 21.0, 21.0]],
    }]

    points = parse_measure_points(records)

    assert [p.time for p in points] == [1000, 1300, 1600]
    assert points[0] == MeasurePoint(time=1000, sum_boiler_on=10, sum_boiler_off=290,
                                     measured_temperature=20.0, setpoint_temperature=20.0)


def test_records_are_concatenated_in_input_order():
    records = [
        {"beg_time": 5000, "step_time": 60, "value": [[1, 0, 19.0, 19.0]]},
        {"beg_time": 1000, "step_time": 60, "value": [[2, 0, 18.0, 18.0], [3, 0, 18.5, 18.5]]},
    ]

    points = parse_measure_points(records)

    assert [p.time for p in points] == [5000, 1000, 1060]
    assert [p.sum_boiler_on for p in points] == [1, 2, 3]


def test_malformed_value_zeroes_only_that_field():
    records = [{"beg_time": 0, "step_time": 300, "value": [[120, "garbage", 21.5, 21.5]]}]

    points = parse_measure_points(records)

    assert len(points) == 1
    assert points[0].sum_boiler_on == 120
    assert points[0].sum_boiler_off == 0
    assert points[0].measured_temperature == 21.5
    assert points[0].setpoint_temperature == 21.5


def test_null_and_missing_slots_are_zero():
    records = [{"beg_time": 0, "step_time": 300, "value": [[None, 5], [7, 8, None, None]]}]

    points = parse_measure_points(records)

    assert points == [
        MeasurePoint(time=0, sum_boiler_on=0, sum_boiler_off=5),
        MeasurePoint(time=300, sum_boiler_on=7, sum_boiler_off=8),
    ]


def test_counter_out_of_range_is_zeroed():
    records = [{"beg_time": 0, "step_time": 300, "value": [[-1, 70000, 20.0, 20.0]]}]

    point = parse_measure_points(records)[0]

    assert point.sum_boiler_on == 0
    assert point.sum_boiler_off == 0
    assert point.measured_temperature == 20.0


def test_record_with_invalid_times_is_dropped():
    records = [
        {"beg_time": "yesterday", "step_time": 300, "value": [[1, 0, 20.0, 20.0]]},
        {"beg_time": 1000, "step_time": 1.5, "value": [[2, 0, 20.0, 20.0]]},
        {"step_time": 300, "value": [[3, 0, 20.0, 20.0]]},
        {"beg_time": 2000, "step_time": 300, "value": [[4, 0, 20.0, 20.0]]},
    ]

    points = parse_measure_points(records)

    assert [(p.time, p.sum_boiler_on) for p in points] == [(2000, 4)]


def test_non_list_rows_are_skipped_but_keep_their_slot():
    records = [{"beg_time": 0, "step_time": 60, "value": [[1, 0, 20.0, 20.0], "bad", [3, 0, 21.0, 21.0]]}]

    points = parse_measure_points(records)

    assert [(p.time, p.sum_boiler_on) for p in points] == [(0, 1), (120, 3)]


def test_record_without_values_yields_nothing():
    assert parse_measure_points([{"beg_time": 0, "step_time": 60}]) == []
    assert parse_measure_points([{"beg_time": 0, "step_time": 60, "value": {"a": 1}}]) == []
    assert parse_measure_points(["not a record"]) == []
    assert parse_measure_points([]) == []


def test_integral_floats_are_accepted_for_counters_and_times():
    records = [{"beg_time": 1000.0, "step_time": 300, "value": [[60.0, 240, 20, 20]]}]

    point = parse_measure_points(records)[0]

    assert point.time == 1000
    assert point.sum_boiler_on == 60
    assert point.measured_temperature == 20.0


def test_setpoint_mirrors_measured_temperature_slot():
    records = [{"beg_time": 0, "step_time": 60, "value": [[0, 300, 19.5, 21.0]]}]

    point = parse_measure_points(records)[0]

    assert point.measured_temperature == 19.5
    assert point.setpoint_temperature == 19.5


def test_measure_types_order():
    assert MEASURE_TYPES == ("sum_boiler_on", "sum_boiler_off", "temperature", "sp_temperature")
