"""Geocoding CLI commands for one-off lookups through the cache."""

import asyncio

import typer

from location_cache.schemas.geocoding import GeocodeOptions, LocationResult

geocode_app = typer.Typer()


@geocode_app.command("lookup")
def lookup(
    address: str = typer.Argument(..., help="Free-text place or address"),  # noqa: B008
    bias_lat: float | None = typer.Option(None, "--bias-lat", help="Bias latitude"),  # noqa: B008
    bias_lng: float | None = typer.Option(None, "--bias-lng", help="Bias longitude"),  # noqa: B008
    country: str | None = typer.Option(None, "--country", help="ISO 3166-1 alpha-2 country filter"),  # noqa: B008
) -> None:
    """Resolve a free-text query to a canonical location."""
    try:
        options = GeocodeOptions(bias_lat=bias_lat, bias_lng=bias_lng, country_filter=country)
        result = asyncio.run(_lookup(address, options))
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    _print_result(result)


@geocode_app.command("reverse")
def reverse(
    lat: float = typer.Option(..., "--lat", help="Latitude (-90 to 90)"),  # noqa: B008
    lng: float = typer.Option(..., "--lng", help="Longitude (-180 to 180)"),  # noqa: B008
) -> None:
    """Resolve coordinates to a canonical location."""
    try:
        result = asyncio.run(_reverse(lat, lng))
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    _print_result(result)


def _print_result(result: LocationResult | None) -> None:
    if result is None:
        typer.echo("No result found.")
        raise typer.Exit(code=1)

    typer.echo(f"{result.formatted_address}")
    typer.echo(f"  Place ID:   {result.place_id}")
    typer.echo(f"  Lat/Lng:    {result.latitude}, {result.longitude}")
    typer.echo(f"  Confidence: {result.confidence.value} ({result.location_type or 'unknown'})")
    typer.echo(f"  Source:     {result.source}")
    typer.echo(f"  Cache hit:  {result.cache_hit}")


async def _lookup(address: str, options: GeocodeOptions) -> LocationResult | None:
    """Async implementation of a forward lookup."""
    from location_cache.core.config import get_settings
    from location_cache.core.database import dispose_engine, get_session_factory, init_engine
    from location_cache.services.geocoding_service import build_geocoding_service

    settings = get_settings()
    init_engine(settings.database_url)

    try:
        service = build_geocoding_service(settings, get_session_factory())
        return await service.geocode(address, options)
    finally:
        await dispose_engine()


async def _reverse(lat: float, lng: float) -> LocationResult | None:
    """Async implementation of a reverse lookup."""
    from location_cache.core.config import get_settings
    from location_cache.core.database import dispose_engine, get_session_factory, init_engine
    from location_cache.services.geocoding_service import build_geocoding_service

    settings = get_settings()
    init_engine(settings.database_url)

    try:
        service = build_geocoding_service(settings, get_session_factory())
        return await service.reverse_geocode(lat, lng)
    finally:
        await dispose_engine()
