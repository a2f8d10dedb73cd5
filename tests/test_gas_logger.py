import logging

from margined_deploy.gas_logger import GasLogger


def test_average_and_max():
    gas = GasLogger()
    for used in (120_000, 95_000, 310_000, 101_000):
        gas.record({"open_position": {}}, used)
    assert len(gas) == 4
    assert gas.average() == (120_000 + 95_000 + 310_000 + 101_000) / 4
    assert gas.max_entry().gas_used == 310_000
    assert [e.gas_used for e in gas.sorted_entries()] == [310_000, 120_000, 101_000, 95_000]


def test_messages_stored_as_compact_json():
    gas = GasLogger()
    gas.record({"set_open": {"open": True}}, 1)
    gas.record("raw text", 2)
    assert [e.msg for e in gas.sorted_entries()] == ["raw text", '{"set_open":{"open":true}}']


def test_empty_logger():
    gas = GasLogger()
    assert gas.average() == 0.0
    assert gas.max_entry() is None


def test_disabled_logger_records_nothing():
    gas = GasLogger(enabled=False)
    gas.record({}, 10)
    assert len(gas) == 0


def test_drain_clears_entries():
    gas = GasLogger()
    gas.record({}, 10)
    assert len(gas.drain()) == 1
    assert len(gas) == 0


def test_report_sections(caplog):
    gas = GasLogger()
    gas.record({"a": {}}, 5)
    gas.record({"b": {}}, 9)
    with caplog.at_level(logging.INFO, logger="margined_deploy.gas_logger"):
        gas.report()
    text = caplog.text
    assert "MAX GAS CONSUMPTION" in text
    assert "avg gas used: 7.0" in text
    assert text.index('{"b":{}}') < text.rindex('{"a":{}}')
