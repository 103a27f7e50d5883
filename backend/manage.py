"""Management commands for the Fivet clinic records backend."""

from __future__ import annotations

import logging

import click

from fivet.core.config import StorageConfig, log_timezone_config
from fivet.core.logging_config import setup_logging
from fivet.db.seed import seed_demo_records
from fivet.db.session import create_engine_from_config, create_tables
from fivet.services.clinic_service import ClinicService


@click.group()
@click.option("--log-level", default="INFO", show_default=True)
@click.option("--json-logs", is_flag=True, help="Emit console logs as JSON.")
def cli(log_level: str, json_logs: bool) -> None:
    """Entry point for management commands."""
    setup_logging(log_level=log_level, log_to_file=False, use_json_format=json_logs)
    log_timezone_config()


@cli.command("init-db")
def init_db() -> None:
    """Create the tables for DATABASE_URL. Existing tables are kept."""
    config = StorageConfig.from_env()
    engine = create_engine_from_config(config)
    try:
        create_tables(engine)
    finally:
        engine.dispose()
    click.echo("Database tables ready.")


@cli.command("seed-demo")
def seed_demo() -> None:
    """Register the demo owners and patients."""
    with ClinicService(StorageConfig.from_env()) as service:
        created = seed_demo_records(service)
    click.echo(f"Seeded {len(created)} patient(s).")


@cli.command("search")
@click.argument("query")
def search(query: str) -> None:
    """Print the patients matching QUERY."""
    with ClinicService(StorageConfig.from_env()) as service:
        patients = service.search_patients(query)
    if not patients:
        logging.info("No patients matched %r", query)
        return
    for patient in patients:
        click.echo(
            f"{patient.number}\t{patient.name}\t{patient.species}\t"
            f"{patient.owner.full_name} ({patient.owner.rut})"
        )


if __name__ == "__main__":
    cli()
