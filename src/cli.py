#!/usr/bin/env python3
"""Command Line Interface for PropBrain.

Usage:
    cd src
    python cli.py server                         # Start API server
    python cli.py init-db                        # Create missing tables
    python cli.py validate-address "Calle ..."   # Geocode one address
    python cli.py preview https://...            # Fetch link metadata
    python cli.py parse-listing https://...      # Run AI listing extraction
    python cli.py info                           # Show configuration
"""
from __future__ import annotations

import json

import typer
import uvicorn

from core.config import get_settings
from core.logging_config import get_logger, setup_logging

LOGGER = get_logger(__name__)
SETTINGS = get_settings()

app = typer.Typer(help="PropBrain CLI")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
) -> None:
    """PropBrain - real-estate acquisition tracker."""
    log_level = "DEBUG" if verbose else SETTINGS.log_level
    setup_logging(level=log_level)


def _echo_json(payload: dict) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


# =============================================================================
# Service Commands
# =============================================================================


@app.command("server")
def run_server(
    host: str = typer.Option(SETTINGS.api_host, help="Host to bind to"),
    port: int = typer.Option(SETTINGS.api_port, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
) -> None:
    """Start the API server."""
    typer.echo(f"Starting API server on {host}:{port}...")
    uvicorn.run("api.app:app", host=host, port=port, reload=reload)


@app.command("init-db")
def init_database() -> None:
    """Create any missing tables."""
    from core.db import init_db

    result = init_db()
    if result["status"] == "error":
        typer.secho(f"✗ Database init failed: {result.get('error')}", fg="red")
        raise typer.Exit(1)
    typer.secho(f"✓ Database ready (created: {', '.join(result['tables_created']) or 'none'})", fg="green")
    for warning in result["warnings"]:
        typer.secho(f"  ! {warning}", fg="yellow")


# =============================================================================
# Enrichment Commands
# =============================================================================


@app.command("validate-address")
def validate_address(
    address: str = typer.Argument(..., help="Free-form address to geocode"),
) -> None:
    """Geocode one address the way the intake screen does."""
    from services.address_validator import AddressValidator, ValidationStatus

    validator = AddressValidator()
    try:
        verdict = validator.validate(address)
    finally:
        validator.close()

    _echo_json(verdict.to_dict())
    if verdict.status == ValidationStatus.INVALID:
        raise typer.Exit(2)


@app.command("preview")
def preview_link(
    url: str = typer.Argument(..., help="Listing URL"),
) -> None:
    """Fetch title and screenshot for a listing link."""
    from services.metadata_fetcher import MetadataFetcher

    fetcher = MetadataFetcher()
    try:
        _echo_json(fetcher.fetch(url).to_dict())
    finally:
        fetcher.close()


@app.command("parse-listing")
def parse_listing(
    source: str = typer.Argument(..., help="Listing URL or pasted listing text"),
) -> None:
    """Extract structured listing fields with the configured LLM."""
    from llm.listing_extractor import ListingExtractor

    result = ListingExtractor().extract(source)
    if not result.ok:
        typer.secho(f"✗ Extraction failed: {result.error}", fg="red")
        raise typer.Exit(1)
    _echo_json(result.listing.to_dict())


# =============================================================================
# Utility Commands
# =============================================================================


@app.command("info")
def show_info() -> None:
    """Show application configuration info."""
    typer.echo("PropBrain Configuration:")
    typer.echo(f"  Environment: {SETTINGS.environment}")
    typer.echo(f"  Log Level: {SETTINGS.log_level}")
    typer.echo(f"  Database: {SETTINGS.database_url}")
    typer.echo(f"  Geocoder: {SETTINGS.geocoder_url if SETTINGS.is_geocoder_enabled() else 'disabled'}")
    typer.echo(f"  Link Preview: {'enabled' if SETTINGS.is_link_preview_enabled() else 'disabled'}")
    typer.echo(f"  Address Debounce: {SETTINGS.address_debounce_ms}ms")
    typer.echo(f"  OpenAI Configured: {SETTINGS.is_openai_enabled()}")
    typer.echo(f"  Anthropic Configured: {SETTINGS.is_anthropic_enabled()}")


if __name__ == "__main__":
    app()
