"""CLI commands for ConsentHub."""

from typing import Optional

import click

from consent_api.db.seed import seed_policy_documents
from consent_api.dependencies import build_ledger
from consent_api.errors import ConsentError
from consent_api.ledger.service import ConsentLedger
from consent_api.settings import get_settings


@click.group()
@click.pass_context
def cli(ctx: click.Context):
    """ConsentHub ledger administration."""
    ctx.ensure_object(dict)
    if "ledger" not in ctx.obj:
        ctx.obj["ledger"] = build_ledger(get_settings())


def _ledger(ctx: click.Context) -> ConsentLedger:
    return ctx.obj["ledger"]


@cli.command()
@click.option("--version", "version", default=None, help="Policy version to publish.")
@click.pass_context
def seed(ctx: click.Context, version: Optional[str]):
    """Publish baseline policy documents."""
    ledger = _ledger(ctx)
    click.echo("Seeding policy documents...")
    try:
        documents = seed_policy_documents(ledger.policies, version or ledger.default_version)
    except ConsentError as e:
        click.echo(f"✗ Error seeding data: {e}", err=True)
        ctx.exit(1)
    click.echo(f"✓ {len(documents)} policy documents published.")


@cli.command()
@click.argument("user_id")
@click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), default=None)
@click.pass_context
def export(ctx: click.Context, user_id: str, output: Optional[str]):
    """Export a user's consent history as JSON."""
    payload = _ledger(ctx).export_user(user_id)
    if output:
        with open(output, "wb") as f:
            f.write(payload)
        click.echo(f"✓ Exported history of {user_id} to {output}")
    else:
        click.echo(payload.decode("utf-8"))


@cli.command(name="import")
@click.argument("user_id")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_(ctx: click.Context, user_id: str, path: str):
    """Import a previously exported history."""
    with open(path, "rb") as f:
        payload = f.read()
    try:
        events = _ledger(ctx).import_user(user_id, payload)
    except ConsentError as e:
        click.echo(f"✗ Import rejected ({e.error_code}): {e}", err=True)
        ctx.exit(1)
    click.echo(f"✓ Imported {len(events)} events for {user_id}")


@cli.command()
@click.argument("user_id")
@click.confirmation_option(prompt="This irreversibly deletes the user's entire consent history. Continue?")
@click.pass_context
def purge(ctx: click.Context, user_id: str):
    """Irreversibly delete a user's consent history."""
    removed = _ledger(ctx).purge_user(user_id)
    click.echo(f"✓ Removed {removed} events for {user_id}")


@cli.command()
@click.argument("user_id")
@click.pass_context
def verify(ctx: click.Context, user_id: str):
    """Verify the hash chain of a user's history."""
    valid, error = _ledger(ctx).verify_history(user_id)
    if not valid:
        click.echo(f"✗ {error}", err=True)
        ctx.exit(1)
    click.echo(f"✓ History of {user_id} is intact")


if __name__ == "__main__":
    cli()
