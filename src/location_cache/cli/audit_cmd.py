"""Audit CLI commands: coordinate drift and cache integrity."""

import asyncio

import typer

from location_cache.schemas.audit import DriftReport, IntegrityReport

audit_app = typer.Typer()

_RULE = "=" * 80


@audit_app.command("drift")
def drift(
    threshold: float | None = typer.Option(None, "--threshold", help="Accuracy threshold in metres"),  # noqa: B008
    delay: float | None = typer.Option(None, "--delay", help="Seconds between provider requests"),  # noqa: B008
) -> None:
    """Compare curated trusted coordinates against fresh provider results."""
    try:
        report = asyncio.run(_drift(threshold, delay))
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    _print_drift_report(report)
    if not report.is_clean:
        raise typer.Exit(code=1)


@audit_app.command("integrity")
def integrity() -> None:
    """Scan the cache tables for dangling aliases and hash mismatches."""
    report = asyncio.run(_integrity())
    typer.echo(f"Locations checked: {report.locations_checked}")
    typer.echo(f"Aliases checked:   {report.aliases_checked}")
    for mismatch in report.hash_mismatches:
        typer.echo(f"  Hash mismatch: {mismatch.place_id} ({mismatch.formatted_address})")
    for alias in report.dangling_aliases:
        typer.echo(f"  Dangling alias: {alias.normalized_query!r} [{alias.locale}] → {alias.place_id}")
    if not report.is_clean:
        raise typer.Exit(code=1)
    typer.echo("No integrity defects found.")


def _print_drift_report(report: DriftReport) -> None:
    typer.echo(_RULE)
    typer.echo("DRIFT AUDIT SUMMARY")
    typer.echo(_RULE)
    typer.echo(f"Accurate: {report.accurate} ({report.percent(report.accurate)}%)")
    typer.echo(f"Warnings: {report.warning_count} ({report.percent(report.warning_count)}%)")
    typer.echo(f"Errors:   {report.error_count} ({report.percent(report.error_count)}%)")

    if report.warnings:
        typer.echo(f"\nLOCATIONS NEEDING REVIEW:\n{_RULE}")
        for entry in report.warnings:
            loc = entry.location
            typer.echo(f"\n{loc.name}, {loc.area}")
            typer.echo(f"  Trusted:    {loc.latitude}, {loc.longitude}")
            typer.echo(f"  Resolved:   {entry.resolved_lat}, {entry.resolved_lng}")
            typer.echo(f"  Distance:   {round(entry.distance_meters or 0)}m")
            typer.echo(f"  Confidence: {entry.confidence}")

    if report.errors:
        typer.echo(f"\nVALIDATION ERRORS:\n{_RULE}")
        for entry in report.errors:
            typer.echo(f"{entry.location.name}, {entry.location.area}: {entry.message}")


async def _drift(threshold: float | None, delay: float | None) -> DriftReport:
    """Async implementation of the drift audit."""
    from location_cache.core.config import get_settings
    from location_cache.lib.geocoder import get_configured_provider
    from location_cache.services.drift_audit_service import audit_locations

    settings = get_settings()
    provider = get_configured_provider(settings)
    return await audit_locations(
        provider,
        threshold_meters=threshold if threshold is not None else settings.drift_threshold_meters,
        delay_seconds=delay if delay is not None else max(settings.drift_request_delay, provider.rate_limit_delay),
    )


async def _integrity() -> IntegrityReport:
    """Async implementation of the integrity scan."""
    from location_cache.core.config import get_settings
    from location_cache.core.database import dispose_engine, get_session_factory, init_engine
    from location_cache.services.integrity_service import check_integrity

    settings = get_settings()
    init_engine(settings.database_url)

    try:
        factory = get_session_factory()
        async with factory() as session:
            return await check_integrity(session)
    finally:
        await dispose_engine()
