"""forest-pipe CLI.

Runs a provider and a user on an in-process network and performs one
Pipe exchange between them. Handy for poking at routing and error
mapping without a real messaging network.

Usage:
    forest-pipe routes                              # List demo routes
    forest-pipe demo GET /offers/0                  # Fetch a seeded offer
    forest-pipe demo GET "/offers?status=active"    # Query string params
    forest-pipe demo POST /offers --body '{"fee": 5, "stock_amount": 2}'
    forest-pipe demo DELETE /offers/0 --format json # 401, user is not the owner
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click

from .config import PipeConfig
from .demo import OfferCatalog, OfferCreate, register_offer_routes
from .errors import PipeTimeoutError
from .pipe import Pipe
from .protocol.envelopes import PipeMethod, PipeResponse, PipeSendRequest
from .transport.memory import MemoryNetwork

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

PROVIDER_ID = "0xprovider"
USER_ID = "0xuser"


def _parse_params(values: tuple[str, ...]) -> dict[str, str]:
    params: dict[str, str] = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {value!r}", param_hint="--param")
        params[key] = item
    return params


def _parse_body(body: str | None) -> Any:
    if body is None:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"invalid JSON: {e}", param_hint="--body") from e


def _seed(catalog: OfferCatalog) -> None:
    catalog.add(OfferCreate(fee=10, stock_amount=5, details_link="bafy-offer-0"))
    catalog.add(OfferCreate(fee=25, stock_amount=1, details_link="bafy-offer-1"))


async def run_demo(request: PipeSendRequest, config: PipeConfig) -> PipeResponse:
    """Serve the demo catalog as the provider and send `request` as the user."""
    network = MemoryNetwork()

    catalog = OfferCatalog(owner=PROVIDER_ID)
    _seed(catalog)

    provider = Pipe(config)
    register_offer_routes(provider, catalog)
    await provider.init(network.connect(PROVIDER_ID))

    user = Pipe(config)
    await user.init(network.connect(USER_ID))

    try:
        return await user.send(PROVIDER_ID, request)
    finally:
        await user.close()
        await provider.close()


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Log level (logs go to stderr)",
)
def main(log_level: str) -> None:
    """forest-pipe - HTTP-like request/response over peer-to-peer messaging."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@main.command()
@click.argument("method", type=click.Choice([m.value for m in PipeMethod], case_sensitive=False))
@click.argument("path")
@click.option("--body", help="JSON request body")
@click.option("--param", "-p", "params", multiple=True, help="Query param as key=value (repeatable)")
@click.option("--timeout", type=float, help="Seconds to wait for the response")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
def demo(
    method: str,
    path: str,
    body: str | None,
    params: tuple[str, ...],
    timeout: float | None,
    output_format: str,
) -> None:
    """Send one request from a demo user to a demo provider.

    Examples:

        forest-pipe demo GET /offers/1

        forest-pipe demo GET /offers -p status=active --format json
    """
    request = PipeSendRequest(
        method=PipeMethod(method.upper()),
        path=path,
        body=_parse_body(body),
        params=_parse_params(params) or None,
        timeout=timeout,
    )
    config = PipeConfig.from_env()

    try:
        response = asyncio.run(run_demo(request, config))
    except PipeTimeoutError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    if output_format == FORMAT_JSON:
        click.echo(json.dumps(response.model_dump(mode="json"), indent=2, ensure_ascii=False))
        return

    click.echo(f"Request: {request.method.value} {request.path}")
    click.echo(f"Id:      {response.id}")
    click.echo(f"Code:    {response.code}")
    if response.body is not None:
        click.echo("Body:")
        click.echo(json.dumps(response.body, indent=2, ensure_ascii=False, default=str))


@main.command()
def routes() -> None:
    """List the routes served by the demo provider."""
    pipe = Pipe()
    register_offer_routes(pipe, OfferCatalog(owner=PROVIDER_ID))

    click.echo(f"{'Methods':<20} {'Path':<30}")
    click.echo("-" * 50)
    for pattern, methods in pipe.router.routes():
        names = ", ".join(m.value for m in methods)
        click.echo(f"{names:<20} {pattern:<30}")


if __name__ == "__main__":
    main()
