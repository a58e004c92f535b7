import logging

PACKAGE = "assets_availability"


class ShortNameFilter(logging.Filter):
    """Adds `record.shortname`: `providers-oku` for `assets_availability.sources.providers.oku`."""
    def filter(self, record):
        parts = [p for p in record.name.split(".") if p != PACKAGE] or [record.name]
        record.shortname = "-".join(parts[-2:])
        return True
