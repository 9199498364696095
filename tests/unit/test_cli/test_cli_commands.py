"""Unit tests for the geocode, audit, and db CLI commands."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from location_cache.cli.app import app
from location_cache.lib.geocoder.confidence import Confidence
from location_cache.schemas.audit import (
    DanglingAlias,
    DriftEntry,
    DriftReport,
    DriftStatus,
    IntegrityReport,
    TrustedLocation,
)
from location_cache.schemas.geocoding import GeocodeOptions, LocationResult

runner = CliRunner()

RESULT = LocationResult(
    place_id="P1",
    formatted_address="DLF Mall of India, Sector 18, Noida, Uttar Pradesh 201301, India",
    latitude=28.5672,
    longitude=77.3211,
    location_type="ROOFTOP",
    confidence=Confidence.HIGH,
    source="google_places",
    cache_hit=True,
)


@pytest.fixture(autouse=True)
def _cli_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    with patch("location_cache.cli.app.setup_logging"):
        yield


class TestGeocodeCommands:
    """Tests for `geocode lookup` and `geocode reverse`."""

    def test_lookup_prints_result(self) -> None:
        with patch("location_cache.cli.geocode_cmd._lookup", new_callable=AsyncMock, return_value=RESULT) as mock:
            result = runner.invoke(
                app,
                ["geocode", "lookup", "dlf mall", "--bias-lat", "28.57", "--bias-lng", "77.32", "--country", "IN"],
            )

        assert result.exit_code == 0, result.output
        assert "DLF Mall of India" in result.output
        assert "Place ID:   P1" in result.output
        assert "Cache hit:  True" in result.output
        address, options = mock.await_args.args
        assert address == "dlf mall"
        assert options == GeocodeOptions(bias_lat=28.57, bias_lng=77.32, country_filter="IN")

    def test_lookup_no_result_exits_1(self) -> None:
        with patch("location_cache.cli.geocode_cmd._lookup", new_callable=AsyncMock, return_value=None):
            result = runner.invoke(app, ["geocode", "lookup", "nowhere"])

        assert result.exit_code == 1
        assert "No result found." in result.output

    def test_lookup_unconfigured_provider_exits_1(self) -> None:
        error = ValueError("Geocoder provider 'google' is not configured (missing API key?)")
        with patch("location_cache.cli.geocode_cmd._lookup", new_callable=AsyncMock, side_effect=error):
            result = runner.invoke(app, ["geocode", "lookup", "dlf mall"])

        assert result.exit_code == 1

    def test_reverse(self) -> None:
        with patch("location_cache.cli.geocode_cmd._reverse", new_callable=AsyncMock, return_value=RESULT) as mock:
            result = runner.invoke(app, ["geocode", "reverse", "--lat", "28.5672", "--lng", "77.3211"])

        assert result.exit_code == 0, result.output
        mock.assert_awaited_once_with(28.5672, 77.3211)


class TestAuditCommands:
    """Tests for `audit drift` and `audit integrity`."""

    def _report(self, *, with_warning: bool) -> DriftReport:
        cp = TrustedLocation(name="Connaught Place", area="New Delhi", state="Delhi", latitude=28.6315, longitude=77.2167)
        entry = DriftEntry(
            location=cp,
            status=DriftStatus.WARNING if with_warning else DriftStatus.ACCURATE,
            resolved_lat=28.6326,
            resolved_lng=77.2167,
            distance_meters=120.3 if with_warning else 4.0,
            confidence=Confidence.HIGH,
            message="120m difference from google_places" if with_warning else "Accurate",
        )
        warnings = [entry] if with_warning else []
        return DriftReport(
            total=1,
            accurate=0 if with_warning else 1,
            warnings=warnings,
            errors=[],
            entries=[entry],
        )

    def test_drift_clean(self) -> None:
        report = self._report(with_warning=False)
        with patch("location_cache.cli.audit_cmd._drift", new_callable=AsyncMock, return_value=report) as mock:
            result = runner.invoke(app, ["audit", "drift", "--threshold", "75", "--delay", "0"])

        assert result.exit_code == 0, result.output
        assert "Accurate: 1 (100%)" in result.output
        mock.assert_awaited_once_with(75.0, 0.0)

    def test_drift_warning_exits_1(self) -> None:
        report = self._report(with_warning=True)
        with patch("location_cache.cli.audit_cmd._drift", new_callable=AsyncMock, return_value=report):
            result = runner.invoke(app, ["audit", "drift"])

        assert result.exit_code == 1
        assert "LOCATIONS NEEDING REVIEW" in result.output
        assert "Distance:   120m" in result.output

    def test_integrity_clean(self) -> None:
        report = IntegrityReport(locations_checked=3, aliases_checked=9)
        with patch("location_cache.cli.audit_cmd._integrity", new_callable=AsyncMock, return_value=report):
            result = runner.invoke(app, ["audit", "integrity"])

        assert result.exit_code == 0, result.output
        assert "No integrity defects found." in result.output

    def test_integrity_defects_exit_1(self) -> None:
        report = IntegrityReport(
            locations_checked=1,
            aliases_checked=2,
            dangling_aliases=[DanglingAlias(normalized_query="dlf mall", locale="en", place_id="GONE")],
        )
        with patch("location_cache.cli.audit_cmd._integrity", new_callable=AsyncMock, return_value=report):
            result = runner.invoke(app, ["audit", "integrity"])

        assert result.exit_code == 1
        assert "Dangling alias: 'dlf mall' [en]" in result.output


class TestDbCommands:
    """Tests for `db upgrade` and `db downgrade`."""

    def test_upgrade_runs_alembic(self, tmp_path: Path) -> None:
        ini = tmp_path / "alembic.ini"
        ini.write_text("[alembic]\nscript_location = alembic\n")
        with patch("alembic.command.upgrade") as mock_upgrade:
            result = runner.invoke(app, ["db", "upgrade", "--config", str(ini)])

        assert result.exit_code == 0, result.output
        config, revision = mock_upgrade.call_args.args
        assert revision == "head"
        assert config.config_file_name == str(ini)

    def test_downgrade_default_revision(self, tmp_path: Path) -> None:
        ini = tmp_path / "alembic.ini"
        ini.write_text("[alembic]\nscript_location = alembic\n")
        with patch("alembic.command.downgrade") as mock_downgrade:
            result = runner.invoke(app, ["db", "downgrade", "--config", str(ini)])

        assert result.exit_code == 0, result.output
        assert mock_downgrade.call_args.args[1] == "-1"

    def test_missing_config_exits_2(self, tmp_path: Path) -> None:
        with patch("alembic.command.upgrade") as mock_upgrade:
            result = runner.invoke(app, ["db", "upgrade", "--config", str(tmp_path / "missing.ini")])

        assert result.exit_code == 2
        mock_upgrade.assert_not_called()
