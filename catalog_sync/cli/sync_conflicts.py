# catalog_sync/cli/sync_conflicts.py
"""
Command-line triggers for the conflict sweep and the catalog rescan, for
cron jobs or an operator without the admin UI.

    python -m catalog_sync.cli.sync_conflicts detect
    python -m catalog_sync.cli.sync_conflicts detect --product-id 12 --product-id 40
    python -m catalog_sync.cli.sync_conflicts rescan
    python -m catalog_sync.cli.sync_conflicts summary
"""
import asyncio
from contextlib import asynccontextmanager

import click

from catalog_sync.core.config import get_settings
from catalog_sync.core.enums import ExternalSystem
from catalog_sync.core.logging_config import configure_logging
from catalog_sync.database import async_session
from catalog_sync.repositories.product import ProductRepository
from catalog_sync.repositories.sync_conflict import SyncConflictRepository
from catalog_sync.services.catalog_reconciler import CatalogReconciler
from catalog_sync.services.conflict_detector import ConflictDetector
from catalog_sync.services.square.client import SquareClient


@asynccontextmanager
async def open_square_client():
    client = SquareClient.from_settings(get_settings())
    try:
        yield client
    finally:
        await client.close()


@click.group()
def cli():
    """Catalog sync maintenance commands"""
    configure_logging(get_settings().LOG_LEVEL)


@cli.command()
@click.option('--system', type=click.Choice([s.value for s in ExternalSystem]), default=ExternalSystem.SQUARE.value)
@click.option('--product-id', 'product_ids', type=int, multiple=True, help='Limit the sweep to these products')
def detect(system, product_ids):
    """Record pending conflicts for every divergence from the external catalog"""

    async def _detect():
        async with async_session() as session, open_square_client() as client:
            detector = ConflictDetector(ProductRepository(session), SyncConflictRepository(session), client)
            return await detector.detect(
                system=ExternalSystem(system),
                product_ids=list(product_ids) if product_ids else None,
            )

    result = asyncio.run(_detect())
    click.echo(f"Detected: {result.detected}")
    click.echo(f"Already pending: {result.skipped}")
    click.echo(f"Pending conflicts: {len(result.conflicts)}")
    for conflict in result.conflicts:
        click.echo(
            f"  #{conflict.id} {conflict.conflict_type.value:<18} {conflict.subject.key:<24} "
            f"local={conflict.local_state.quantity}/{conflict.local_state.price} "
            f"external={conflict.external_state.quantity}/{conflict.external_state.price}"
        )


@cli.command()
def rescan():
    """Re-read the whole external catalog into the local cache"""

    async def _rescan():
        async with async_session() as session, open_square_client() as client:
            return await CatalogReconciler(ProductRepository(session), client).rescan()

    report = asyncio.run(_rescan())
    click.echo(report.as_details())
    for error in report.errors:
        click.echo(f"  ! {error}", err=True)


@cli.command()
def summary():
    """Counts of pending and resolved conflicts"""

    async def _summary():
        async with async_session() as session:
            return await SyncConflictRepository(session).get_summary()

    result = asyncio.run(_summary())
    click.echo(f"Pending:  {result.pending}")
    click.echo(f"Resolved: {result.resolved}")
    click.echo(f"Ignored:  {result.ignored}")
    for conflict_type, count in sorted(result.by_type.items()):
        click.echo(f"  {conflict_type}: {count}")


if __name__ == "__main__":
    cli()
