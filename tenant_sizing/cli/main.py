"""
CLI interface for Tenant Sizing.

Provides command-line access to the sizing pipeline.
"""

import logging
import sys
from dataclasses import replace
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tenant_sizing.config.loader import SizingConfig, load_sizing_config
from tenant_sizing.core.forecast import SizingResult, WorkloadInput, run_forecast
from tenant_sizing.core.growth import GrowthMethod
from tenant_sizing.core.licensing import LicensePlan, LocalPackSolver, PlanStatus
from tenant_sizing.core.units import bytes_to_gb
from tenant_sizing.reports.loader import load_archive_stats, load_history_report, load_usage_report
from tenant_sizing.reports.models import Workload
from tenant_sizing.sdk.solver_client import LicenseSolverClient

app = typer.Typer()
console = Console()

# Exit codes - warnings are non-failing (0)
EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

WORKLOAD_LABELS = {
    Workload.MAIL: "Mail",
    Workload.FILE_SYNC: "File sync",
    Workload.SITES: "Sites",
}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(path: Optional[str]) -> SizingConfig:
    return load_sizing_config(path) if path else SizingConfig.default()


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Tenant Sizing CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Tenant Sizing - Use --help to see available commands")


@app.command()
def status(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Sizing config YAML"),
):
    """Show the effective sizing configuration."""
    try:
        config = _load_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    forecast = config.forecast
    console.print(f"Report period: {forecast.report_period_days} days")
    console.print(f"Growth method: {forecast.growth_method.value}")
    console.print(f"Custom growth: {forecast.custom_growth_percent}% over {forecast.custom_horizon_years} year(s)")
    console.print(f"Insufficient history: {forecast.insufficient_history.value}")
    console.print(f"License storage basis: {config.licensing.storage_basis.value}")
    console.print(f"License solver: {config.licensing.solver_url or 'local'}")
    console.print(f"Membership filter: {config.filter.membership_file or 'none'}")


@app.command()
def forecast(
    mail: Optional[str] = typer.Option(None, "--mail", help="Mailbox usage detail CSV"),
    file_sync: Optional[str] = typer.Option(None, "--file-sync", help="File-sync account usage detail CSV"),
    sites: Optional[str] = typer.Option(None, "--sites", help="Site usage detail CSV"),
    mail_history: Optional[str] = typer.Option(None, "--mail-history", help="Mailbox storage history CSV"),
    file_sync_history: Optional[str] = typer.Option(None, "--file-sync-history", help="File-sync storage history CSV"),
    sites_history: Optional[str] = typer.Option(None, "--sites-history", help="Site storage history CSV"),
    sites_history_type: Optional[str] = typer.Option(
        None, "--sites-history-type", help="Site type to keep from a mixed site history"
    ),
    archive: Optional[str] = typer.Option(None, "--archive", help="Per-mailbox archive statistics CSV"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Sizing config YAML"),
    period: Optional[int] = typer.Option(None, "--period", "-p", help="Reporting window in days (7/30/90/180)"),
    custom_growth: Optional[int] = typer.Option(None, "--custom-growth", "-g", help="Custom annual growth percent"),
    method: Optional[GrowthMethod] = typer.Option(None, "--method", "-m", help="Growth estimation method"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    Forecast storage growth and the licenses needed to cover it.

    Reads downloaded usage reports; at least one workload usage report is
    required. Workloads without a history report follow the configured
    insufficient-history policy.
    """
    _setup_logging(verbose)

    try:
        config = _load_config(config_path)
        settings = config.to_settings()
        overrides = {}
        if period is not None:
            overrides["report_period_days"] = period
        if custom_growth is not None:
            overrides["custom_growth_percent"] = custom_growth
        if method is not None:
            overrides["growth_method"] = method
        if overrides:
            settings = replace(settings, **overrides)

        inputs: List[WorkloadInput] = []
        for workload, usage_path, history_path, history_type in (
            (Workload.MAIL, mail, mail_history, None),
            (Workload.FILE_SYNC, file_sync, file_sync_history, None),
            (Workload.SITES, sites, sites_history, sites_history_type),
        ):
            if usage_path is None:
                continue
            inputs.append(WorkloadInput(
                workload=workload,
                records=load_usage_report(usage_path, workload),
                history=load_history_report(history_path) if history_path else [],
                history_type=history_type,
            ))

        if not inputs:
            console.print("[red]Error:[/] at least one of --mail, --file-sync or --sites is required")
            sys.exit(EXIT_CODE_FAIL)

        archive_stats = load_archive_stats(archive) if archive else None
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if config.licensing.solver_url:
        solver = LicenseSolverClient(config.licensing.solver_url, timeout=config.licensing.solver_timeout)
    else:
        solver = LocalPackSolver()

    result = run_forecast(inputs, settings=settings, archive_stats=archive_stats, solver=solver)
    _display_result(result, settings.custom_growth_percent, settings.custom_horizon_years)
    sys.exit(EXIT_CODE_PASS)


def _format_gb(value: Optional[float]) -> str:
    """Format bytes as GB, or N/A when unknown."""
    if value is None:
        return "N/A"
    return f"{bytes_to_gb(value):,.2f} GB"


def _format_percent(fraction: Optional[float]) -> str:
    if fraction is None:
        return "N/A"
    percent = fraction * 100
    return f"{'+' if percent >= 0 else ''}{percent:,.2f}%"


def _display_result(result: SizingResult, custom_percent: int, custom_years: int) -> None:
    """Display the sizing result as tables."""
    console.print("\n[bold]Storage Forecast[/bold]")

    table = Table()
    for column in ("Workload", "Entities", "Current", "Per entity", "Growth/yr",
                   "1 year", "3 years", f"{custom_percent}% x {custom_years}y"):
        table.add_column(column)

    for workload, workload_forecast in result.workloads.items():
        totals = workload_forecast.totals
        growth = workload_forecast.growth
        growth_text = _format_percent(growth.fraction if growth else None)
        if growth is not None and growth.assumed:
            growth_text += " (assumed)"
        table.add_row(
            WORKLOAD_LABELS[workload],
            "N/A" if totals is None else f"{totals.entity_count:,}",
            _format_gb(totals.total_bytes if totals else None),
            _format_gb(totals.bytes_per_entity if totals else None),
            growth_text,
            _format_gb(workload_forecast.one_year_bytes),
            _format_gb(workload_forecast.three_year_bytes),
            _format_gb(workload_forecast.custom_projection),
        )
    console.print(table)

    tenant = result.tenant
    console.print(f"\n[bold]Tenant total:[/bold] {_format_gb(tenant.total_bytes)} "
                  f"across {tenant.total_items:,} items")
    if result.archive is not None:
        console.print(f"Includes archives: {result.archive.total_archive_gb:,.3f} GB "
                      f"from {result.archive.mailboxes_with_archive:,} mailboxes")
    console.print(f"1 year: {_format_gb(tenant.one_year_bytes)}  "
                  f"3 years: {_format_gb(tenant.three_year_bytes)}  "
                  f"Custom: {_format_gb(tenant.custom_bytes)}")
    console.print(f"Users requiring a license: {tenant.required_license_users:,}")

    if result.license_plan is not None:
        _display_license_plan(result.license_plan)

    if result.warnings:
        console.print("\n[bold yellow]Warnings[/]")
        for warning in result.warnings:
            scope = WORKLOAD_LABELS[warning.workload] if warning.workload else "Tenant"
            console.print(f"[yellow]{scope}:[/] {warning.message}")


def _display_license_plan(plan: LicensePlan) -> None:
    console.print("\n[bold]License Recommendation[/bold]")
    if plan.status == PlanStatus.UNAVAILABLE:
        console.print(f"[yellow]{plan.message}[/]")
        return

    table = Table()
    table.add_column("Tier")
    table.add_column("Packs")
    table.add_column("Users")
    for capacity, packs in plan.pack_counts.items():
        table.add_row(f"{capacity} GB", f"{packs:,}", f"{plan.users_per_tier[capacity]:,}")
    table.add_row("Unlimited", f"{plan.unlimited_packs:,}", f"{plan.unlimited_users:,}")
    console.print(table)

    console.print(f"Users covered: {plan.total_users_covered:,}")
    if plan.total_capacity_gb is not None:
        console.print(f"Storage covered: {plan.total_capacity_gb:,} GB "
                      f"(required {plan.required_storage_gb:,.2f} GB)")
    if plan.message:
        console.print(plan.message)


if __name__ == "__main__":
    app()
