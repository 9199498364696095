"""Unit tests for the drift audit service."""

from unittest.mock import AsyncMock

import pytest
from loguru import logger

from location_cache.lib.geocoder.base import ProviderResult
from location_cache.lib.geocoder.confidence import Confidence
from location_cache.schemas.audit import DriftStatus, TrustedLocation
from location_cache.services.drift_audit_service import (
    DELHI_NCR_LOCATIONS,
    audit_locations,
    check_location,
)

# One metre of latitude in degrees on a 6,371 km sphere
_DEG_PER_METER = 1 / 111_194.93

CP = TrustedLocation(name="Connaught Place", area="New Delhi", state="Delhi", latitude=28.6315, longitude=77.2167)
KAROL_BAGH = TrustedLocation(name="Karol Bagh", area="New Delhi", state="Delhi", latitude=28.6517, longitude=77.1909)
SAKET = TrustedLocation(name="Saket", area="New Delhi", state="Delhi", latitude=28.5245, longitude=77.2069)


def _north_of(location: TrustedLocation, meters: float, location_type: str = "ROOFTOP") -> ProviderResult:
    return ProviderResult(
        place_id=f"{location.name}-resolved",
        formatted_address=location.query,
        latitude=location.latitude + meters * _DEG_PER_METER,
        longitude=location.longitude,
        location_type=location_type,
    )


class TestTrustedLocation:
    """Tests for TrustedLocation.query."""

    def test_query_joins_parts(self) -> None:
        assert CP.query == "Connaught Place, New Delhi, Delhi"

    def test_query_skips_empty_parts(self) -> None:
        assert TrustedLocation(name="India Gate", latitude=28.61, longitude=77.23).query == "India Gate"

    def test_curated_list(self) -> None:
        assert len(DELHI_NCR_LOCATIONS) == 17
        assert all(loc.country == "India" for loc in DELHI_NCR_LOCATIONS)


class TestCheckLocation:
    """Tests for check_location."""

    async def test_accurate(self, provider_factory) -> None:
        provider = provider_factory(forward={CP.query: _north_of(CP, 10)})

        entry = await check_location(provider, CP)

        assert entry.status is DriftStatus.ACCURATE
        assert entry.distance_meters == pytest.approx(10, abs=0.1)
        assert entry.confidence is Confidence.HIGH
        assert entry.message == "Accurate"
        assert provider.forward_calls[0][0] == "Connaught Place, New Delhi, Delhi"

    async def test_warning_message(self, provider_factory) -> None:
        provider = provider_factory(forward={CP.query: _north_of(CP, 120)})

        entry = await check_location(provider, CP)

        assert entry.status is DriftStatus.WARNING
        assert entry.distance_meters == pytest.approx(120, abs=0.5)
        assert entry.message == "120m difference from fake"

    async def test_threshold_is_inclusive(self, provider_factory) -> None:
        provider = provider_factory(forward={CP.query: _north_of(CP, 75)})

        assert (await check_location(provider, CP, threshold_meters=80)).status is DriftStatus.ACCURATE
        assert (await check_location(provider, CP, threshold_meters=50)).status is DriftStatus.WARNING

    async def test_no_result_is_error(self, provider_factory) -> None:
        entry = await check_location(provider_factory(), CP)

        assert entry.status is DriftStatus.ERROR
        assert entry.distance_meters is None
        assert "no provider result" in entry.message

    async def test_provider_exception_is_error(self, provider_factory) -> None:
        entry = await check_location(provider_factory(error=RuntimeError("quota exceeded")), CP)

        assert entry.status is DriftStatus.ERROR
        assert "quota exceeded" in entry.message


class TestAuditLocations:
    """Tests for audit_locations."""

    async def test_report_counts_and_warning_order(self, provider_factory) -> None:
        provider = provider_factory(
            forward={
                CP.query: _north_of(CP, 120),
                KAROL_BAGH.query: _north_of(KAROL_BAGH, 60),
                SAKET.query: _north_of(SAKET, 5),
            }
        )
        missing = TrustedLocation(name="Nowhere", latitude=0.0, longitude=0.0)

        report = await audit_locations(provider, [KAROL_BAGH, SAKET, CP, missing], delay_seconds=0)

        assert report.total == 4
        assert report.accurate == 1
        assert report.warning_count == 2
        assert report.error_count == 1
        assert [e.location.name for e in report.warnings] == ["Connaught Place", "Karol Bagh"]
        assert report.warnings[0].distance_meters > report.warnings[1].distance_meters
        assert report.errors[0].location.name == "Nowhere"
        assert [e.location.name for e in report.entries] == ["Karol Bagh", "Saket", "Connaught Place", "Nowhere"]
        assert report.percent(report.accurate) == 25
        assert report.is_clean is False

    async def test_sequential_with_delay_between_requests(self, provider_factory) -> None:
        provider = provider_factory(forward={loc.query: _north_of(loc, 1) for loc in (CP, KAROL_BAGH, SAKET)})
        sleep = AsyncMock()

        report = await audit_locations(provider, [CP, KAROL_BAGH, SAKET], delay_seconds=0.25, sleep=sleep)

        assert report.is_clean is True
        assert [call.args[0] for call in sleep.await_args_list] == [0.25, 0.25]
        assert [c[0] for c in provider.forward_calls] == [CP.query, KAROL_BAGH.query, SAKET.query]

    async def test_zero_delay_never_sleeps(self, provider_factory) -> None:
        sleep = AsyncMock()
        await audit_locations(provider_factory(), [CP, SAKET], delay_seconds=0, sleep=sleep)
        sleep.assert_not_awaited()

    async def test_empty_list(self, provider_factory) -> None:
        report = await audit_locations(provider_factory(), [])

        assert report.total == 0
        assert report.percent(0) == 0
        assert report.is_clean is True

    async def test_failures_do_not_stop_the_run(self, provider_factory) -> None:
        provider = provider_factory(error=RuntimeError("service down"))

        report = await audit_locations(provider, [CP, SAKET], delay_seconds=0)

        assert report.error_count == 2
        assert len(provider.forward_calls) == 2

    async def test_summary_is_logged_as_audit_record(self, provider_factory) -> None:
        provider = provider_factory(forward={CP.query: _north_of(CP, 120), SAKET.query: _north_of(SAKET, 5)})
        records: list[dict] = []
        sink_id = logger.add(lambda message: records.append(message.record), filter=lambda r: "audit" in r["extra"])
        try:
            await audit_locations(provider, [CP, SAKET], delay_seconds=0)
        finally:
            logger.remove(sink_id)

        assert len(records) == 1
        extra = records[0]["extra"]
        assert extra["audit"] == "drift"
        assert extra["provider"] == "fake"
        assert (extra["total"], extra["accurate"], extra["warnings"], extra["errors"]) == (2, 1, 1, 0)
