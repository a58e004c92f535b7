import logging

from assets_availability.utils.shortname import ShortNameFilter


def _shortname(name):
    record = logging.LogRecord(name, logging.INFO, __file__, 1, "msg", None, None)
    assert ShortNameFilter().filter(record)
    return record.shortname


def test_last_two_parts_without_package():
    assert _shortname("assets_availability.sources.providers.oku") == "providers-oku"
    assert _shortname("assets_availability.main") == "main"
    assert _shortname("uvicorn.error") == "uvicorn-error"
    assert _shortname("root") == "root"
