# -*- coding: utf-8 -*-
"""
GreenLedger CLI
===============

Command line access to the emissions engine.

Usage:
    greenledger factors --category electricity --region DE
    greenledger calculate 1000 liter --category diesel --region GLOBAL --year 2025
    greenledger units --dimension volume

Exit codes of ``calculate``: 0 success, 1 no emission factor (or catalog
problem), 2 invalid input.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from greenledger import __version__
from greenledger.calculation.catalog import FactorCatalog, load_catalog, load_default_catalog
from greenledger.calculation.core_calculator import EmissionCalculator
from greenledger.calculation.models import ActivityInput
from greenledger.calculation.unit_converter import UnitConverter
from greenledger.config import get_config
from greenledger.exceptions import (
    CatalogException,
    FactorNotFound,
    GreenLedgerException,
    InvalidInput,
    format_exception_chain,
)

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="greenledger",
    help="GreenLedger: emissions calculation engine",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

EXIT_NOT_FOUND = 1
EXIT_INVALID_INPUT = 2

CatalogOption = typer.Option(
    None, "--catalog", help="YAML/JSON factor catalog (defaults to the bundled factors)"
)


@app.callback(invoke_without_command=True)
def _root(
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at the configured level"),
):
    """
    GreenLedger - activity data to kg CO2e with full provenance
    """
    config = get_config()
    logging.basicConfig(
        level=config.log_level if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if version:
        console.print(f"GreenLedger v{__version__}")
        raise typer.Exit(0)


def _load_catalog(catalog_path: Optional[Path]) -> FactorCatalog:
    if catalog_path is not None:
        return load_catalog(catalog_path)
    configured = get_config().catalog_path
    if configured:
        return load_catalog(configured)
    return load_default_catalog()


def _fail(exc: GreenLedgerException, exit_code: int) -> None:
    logger.debug("Command failed:\n%s", format_exception_chain(exc))
    err_console.print(f"[red]{escape(exc.error_code)}[/red] {escape(exc.message)}")
    if exc.remediation:
        err_console.print(f"[yellow]Hint:[/yellow] {escape(exc.remediation)}")
    raise typer.Exit(exit_code)


@app.command()
def factors(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Filter by category"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="Region (GLOBAL factors included)"),
    org: Optional[str] = typer.Option(None, "--org", help="Include this organization's own factors"),
    catalog: Optional[Path] = CatalogOption,
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
):
    """List active emission factors"""
    try:
        snapshot = _load_catalog(catalog)
    except CatalogException as e:
        _fail(e, EXIT_NOT_FOUND)

    selected = snapshot.list_factors(category=category, region=region, organization_id=org)

    if as_json:
        typer.echo(json.dumps([f.to_dict() for f in selected], indent=2))
        return

    if not selected:
        console.print("[yellow]No emission factors found[/yellow]")
        return

    table = Table(title=f"Emission factors ({len(selected)})")
    table.add_column("ID", style="cyan")
    table.add_column("Category")
    table.add_column("Subcategory")
    table.add_column("Region")
    table.add_column("Year", justify="right")
    table.add_column("kg CO2e / unit", justify="right")
    table.add_column("Unit")
    table.add_column("Source")

    for f in selected:
        value = str(f.co2_per_unit) if f.is_pre_weighted else f"{f.co2_per_unit} (CO2)"
        table.add_row(
            f.factor_id,
            f.category,
            f.subcategory or "-",
            f.region,
            str(f.year),
            value,
            f.unit,
            f.source,
        )
    console.print(table)


@app.command()
def calculate(
    value: str = typer.Argument(..., help="Activity quantity (must be positive)"),
    unit: str = typer.Argument(..., help="Activity unit, e.g. liter, kWh, km"),
    category: str = typer.Option(..., "--category", "-c", help="Activity category"),
    region: str = typer.Option("GLOBAL", "--region", "-r", help="Region code"),
    year: int = typer.Option(..., "--year", "-y", help="Reporting year"),
    subcategory: Optional[str] = typer.Option(None, "--subcategory", "-s"),
    factor_id: Optional[str] = typer.Option(None, "--factor-id", help="Use this factor id"),
    org: Optional[str] = typer.Option(None, "--org", help="Requesting organization id"),
    catalog: Optional[Path] = CatalogOption,
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
):
    """Calculate kg CO2e for one activity"""
    try:
        activity = ActivityInput(
            activity_value=value,
            activity_unit=unit,
            category=category,
            subcategory=subcategory,
            region=region,
            year=year,
            factor_id=factor_id,
        )
    except ValidationError as e:
        _fail(
            InvalidInput(
                f"Invalid activity: {e.errors()[0]['msg']}",
                context={"errors": [err["msg"] for err in e.errors()]},
            ),
            EXIT_INVALID_INPUT,
        )

    try:
        calculator = EmissionCalculator(_load_catalog(catalog))
        result = calculator.calculate(activity, organization_id=org)
    except InvalidInput as e:
        _fail(e, EXIT_INVALID_INPUT)
    except (FactorNotFound, CatalogException) as e:
        _fail(e, EXIT_NOT_FOUND)

    if as_json:
        typer.echo(result.to_json(indent=2))
        return

    used = result.factor_used
    console.print(f"[bold green]{result.co2e} kg CO2e[/bold green]")
    console.print(
        f"Factor: {escape(used.factor_id)} ({escape(used.source)} {used.year}, "
        f"{escape(used.region)}, {used.fallback_level.value})"
    )
    console.print(escape(result.methodology))
    console.print(f"[dim]provenance {result.provenance_hash}[/dim]")


@app.command()
def units(
    dimension: Optional[str] = typer.Option(None, "--dimension", "-d", help="mass, volume, energy, distance or count"),
):
    """List supported unit names"""
    converter = UnitConverter()
    try:
        supported = converter.list_supported_units(dimension)
    except ValueError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(EXIT_INVALID_INPUT)

    for dim, aliases in supported.items():
        console.print(
            f"[bold]{dim}[/bold] (canonical: {converter.canonical_unit(dim)}): "
            + ", ".join(aliases)
        )


def main():
    app()


if __name__ == "__main__":
    main()
