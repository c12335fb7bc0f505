"""Tests for clock helpers."""

import re

from whatsgate.infra.time import utc_now, utc_now_iso


def test_utc_now_is_aware():
    assert utc_now().utcoffset().total_seconds() == 0


def test_iso_has_milliseconds_and_z():
    assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", utc_now_iso())
