from __future__ import annotations

import click
from flask import Flask

from supply_tracker.fixtures import seed_store
from supply_tracker.mirror.sql_store import SqlDocumentStore
from supply_tracker.services import get_services
from supply_tracker.ui_strings import order_view_keys, order_view_label
from supply_tracker.views.classifier import OrderView


def register_tracker_cli(app: Flask) -> None:
    @app.cli.group("tracker")
    def tracker_group() -> None:
        """Purchase request mirror and order view commands."""

    @tracker_group.command("views")
    @click.option("--view", "view_slug", default=None, help="List the orders of one view.")
    def tracker_views(view_slug: str | None) -> None:
        services = get_services(app)
        if not services.mirror.running:
            services.mirror.start()
        services.deliver_pending()

        views = services.order_views()
        if view_slug:
            try:
                view = OrderView.from_slug(view_slug)
            except ValueError as exc:
                raise click.BadParameter(str(exc), param_hint="--view") from exc
            for record in views.get(view):
                click.echo(
                    f"{record.request.id}\t{record.sku.sku}\t{record.vendor.vendor_id}\t"
                    f"{record.po_number}\t{record.po_status.value}"
                )
            return

        counts = views.counts()
        for key in order_view_keys():
            click.echo(f"{order_view_label(key)}: {counts.get(key, 0)}")

    @tracker_group.command("init-store")
    def tracker_init_store() -> None:
        store = SqlDocumentStore(app.config["DB_PATH"], background=False)
        store.init_schema()
        click.echo("Document store schema ready.")

    @tracker_group.command("seed")
    def tracker_seed() -> None:
        services = get_services(app)
        seeded = seed_store(services.store, services.collection)
        click.echo(f"Seeded {seeded} purchase requests into {services.collection}.")
