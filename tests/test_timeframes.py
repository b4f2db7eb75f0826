"""Tests de alineación de buckets por timeframe."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from guildmarket.domain.value_objects.timeframe import ALL_TIMEFRAMES, Timeframe, bucket_start

SEOUL = ZoneInfo("Asia/Seoul")

# Miércoles 2026-03-04 15:47:33 en Seúl
NOW = datetime(2026, 3, 4, 15, 47, 33, 120_000, tzinfo=SEOUL)


class TestBucketStart:

    @pytest.mark.parametrize("timeframe, expected", [
        (Timeframe.REALTIME, datetime(2026, 3, 4, 15, 47, tzinfo=SEOUL)),
        (Timeframe.M1, datetime(2026, 3, 4, 15, 47, tzinfo=SEOUL)),
        (Timeframe.M3, datetime(2026, 3, 4, 15, 45, tzinfo=SEOUL)),
        (Timeframe.M5, datetime(2026, 3, 4, 15, 45, tzinfo=SEOUL)),
        (Timeframe.M10, datetime(2026, 3, 4, 15, 40, tzinfo=SEOUL)),
        (Timeframe.M15, datetime(2026, 3, 4, 15, 45, tzinfo=SEOUL)),
        (Timeframe.M30, datetime(2026, 3, 4, 15, 30, tzinfo=SEOUL)),
        (Timeframe.H1, datetime(2026, 3, 4, 15, 0, tzinfo=SEOUL)),
        (Timeframe.H2, datetime(2026, 3, 4, 14, 0, tzinfo=SEOUL)),
        (Timeframe.H4, datetime(2026, 3, 4, 12, 0, tzinfo=SEOUL)),
        (Timeframe.D1, datetime(2026, 3, 4, tzinfo=SEOUL)),
        (Timeframe.D7, datetime(2026, 3, 2, tzinfo=SEOUL)),
        (Timeframe.D30, datetime(2026, 3, 1, tzinfo=SEOUL)),
        (Timeframe.D365, datetime(2026, 1, 1, tzinfo=SEOUL)),
    ])
    def test_alignment(self, timeframe, expected):
        assert bucket_start(timeframe, NOW) == expected

    def test_accepts_string_value(self):
        assert bucket_start("15m", NOW) == bucket_start(Timeframe.M15, NOW)

    def test_bucket_keeps_timezone(self):
        assert bucket_start(Timeframe.D1, NOW).tzinfo is SEOUL

    def test_bucket_is_idempotent(self):
        """Alinear un inicio de bucket devuelve el mismo instante."""
        for timeframe in ALL_TIMEFRAMES:
            start = bucket_start(timeframe, NOW)
            assert bucket_start(timeframe, start) == start

    def test_fourteen_timeframes(self):
        assert len(ALL_TIMEFRAMES) == 14
        assert ALL_TIMEFRAMES[0] is Timeframe.REALTIME

    def test_unknown_timeframe_rejected(self):
        with pytest.raises(ValueError):
            bucket_start("2m", NOW)
