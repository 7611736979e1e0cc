"""E-Waste CLI — run the API, provision bins, simulate sensors.

Usage:
    ewaste serve                              # Run the API with uvicorn
    ewaste provision S1 --active              # Create a bin for a new sensor
    ewaste fill S1 87                         # Report a fill level as the sensor would
    ewaste notify S1 87                       # Trigger the owner's push alert
    ewaste bins --token <jwt>                 # List every bin
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Optional

import click
import httpx

from ewaste import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:7100"


def _api_url() -> str:
    return os.environ.get("EWASTE_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the E-Waste API."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _fail(response: httpx.Response) -> None:
    """Print an API error body and exit non-zero."""
    try:
        body = response.json()
        message = body.get("errorMessage") or body.get("message") or body
    except ValueError:
        message = response.text
    click.secho(f"Error {response.status_code}: {message}", fg="red", err=True)
    sys.exit(1)


def _fill_color(percentage: float) -> str:
    if percentage >= 90:
        return "red"
    if percentage >= 70:
        return "yellow"
    return "green"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="ewaste")
def main():
    """E-Waste — smart waste-bin monitoring backend."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: EWASTE_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: EWASTE_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from ewaste.config import settings

    uvicorn.run(
        "ewaste.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
@click.argument("sensor_id")
@click.option("--active", is_flag=True, help="Mark the bin active")
def provision(sensor_id: str, active: bool):
    """Create a bin row for SENSOR_ID directly in the database."""
    asyncio.run(_provision_impl(sensor_id, active))


async def _provision_impl(sensor_id: str, active: bool):
    from ewaste.config import settings
    from ewaste.db.engine import create_engine, create_session_factory
    from ewaste.services.bin_service import BinService

    engine = create_engine(settings)
    try:
        async with create_session_factory(engine)() as db:
            bin_ = await BinService(db).provision(sensor_id, is_active=active)
        click.secho(f"Bin {bin_.id} provisioned for sensor {sensor_id}", fg="green")
    finally:
        await engine.dispose()


@main.command()
@click.argument("sensor_id")
@click.argument("percentage", type=float)
def fill(sensor_id: str, percentage: float):
    """Report PERCENTAGE fill for SENSOR_ID, as the sensor would."""
    asyncio.run(_fill_impl(sensor_id, percentage))


async def _fill_impl(sensor_id: str, percentage: float):
    async with _client() as c:
        r = await c.patch(
            "/api/v1/bins/fill-level",
            json={"sensorId": sensor_id, "percentage": percentage},
        )
        if r.status_code != 200:
            _fail(r)
        click.echo(_pretty_json(r.json()))


@main.command()
@click.argument("sensor_id")
@click.argument("percentage", type=float)
def notify(sensor_id: str, percentage: float):
    """Send the fill-level push alert to SENSOR_ID's owner."""
    asyncio.run(_notify_impl(sensor_id, percentage))


async def _notify_impl(sensor_id: str, percentage: float):
    async with _client() as c:
        r = await c.post(
            "/api/v1/notify-user",
            json={"sensorId": sensor_id, "fillPercentage": percentage},
        )
        if r.status_code != 200:
            _fail(r)
        click.secho(r.json()["message"], fg="green")


@main.command()
@click.option("--token", envvar="EWASTE_TOKEN", required=True, help="Bearer token (or EWASTE_TOKEN)")
def bins(token: str):
    """List every bin with its fill level."""
    asyncio.run(_bins_impl(token))


async def _bins_impl(token: str):
    async with _client() as c:
        r = await c.get("/api/v1/bins/all", headers={"Authorization": f"Bearer {token}"})
        if r.status_code != 200:
            _fail(r)
        rows = r.json()

    if not rows:
        click.echo("No bins provisioned.")
        return

    click.secho(f"Bins ({len(rows)}):", bold=True)
    for b in rows:
        pct = click.style(f"{b['fillPercentage']:6.1f}%", fg=_fill_color(b["fillPercentage"]))
        owner = b["userId"] or "—"
        active = "active" if b["isActive"] else "inactive"
        click.echo(f"  {b['sensorId']:20s}  {pct}  {active:8s}  owner={owner}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
