"""
Flask CLI commands.

Commands:
- flask init-db: Create the database tables
- flask reconcile-orders [--fix]: Report (and optionally repair) orders whose
  stored totals drifted from their items
"""

import click

from orderdesk.database import create_tables, get_session
from orderdesk.services import order_service


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        create_tables(app)
        click.echo(click.style('✅ Tables created.', fg='green'))

    @app.cli.command('reconcile-orders')
    @click.option('--fix', is_flag=True, help='Write the recomputed totals back to the drifted orders')
    def reconcile_orders_command(fix):
        """Compare stored order totals with the totals recomputed from items."""
        report = order_service.reconcile_orders(get_session(), fix=fix)

        if not report:
            click.echo(click.style('✅ All order totals are consistent.', fg='green'))
            return

        for entry in report:
            click.echo(
                f"Order {entry['order_number']} (id={entry['order_id']}): "
                f"{', '.join(entry['drift_fields'])} | "
                f"stored total {entry['stored_total']} -> computed {entry['computed_total']}"
            )

        if fix:
            click.echo(click.style(f'\n✅ {len(report)} orders fixed.', fg='green', bold=True))
        else:
            click.echo(click.style(f'\n⚠️  {len(report)} orders drifted. Run with --fix to repair.', fg='yellow'))
