"""
gcseval CLI - exercise gcloud storage commands and validate signed URLs.
"""
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.table import Table

from gcseval.browser import SignedUrlValidator, shared_engine, shutdown_shared_engine
from gcseval.config import HarnessConfig, load_config
from gcseval.exceptions import CommandTimeout, ConfigurationError, ListFailure, ParseFailure, SignFailure
from gcseval.gcloud import GCloudStorageCli
from gcseval.types import SignedUrlValidationResult, Verdict
from gcseval.utils.commands import SUITES, build_pytest_args

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _overrides(ctx: click.Context) -> Dict[str, Any]:
    return ctx.obj["overrides"]


def _load_config(ctx: click.Context) -> HarnessConfig:
    config_file = ctx.obj["config_file"]
    return load_config(
        config_path=Path(config_file) if config_file else None,
        overrides=_overrides(ctx),
    )


def _storage_cli(ctx: click.Context) -> GCloudStorageCli:
    """Facade configured from gcseval.yaml/env when available, defaults otherwise."""
    try:
        return GCloudStorageCli.from_config(_load_config(ctx))
    except ConfigurationError:
        return GCloudStorageCli()


@click.group()
@click.version_option(version=None, package_name="gcseval")
@click.option('--config', 'config_file', type=click.Path(exists=True), help='Path to gcseval.yaml')
@click.option('--bucket', help='Bucket name (overrides GCS_BUCKET_NAME)')
@click.option('--project', help='Project ID (overrides GCS_PROJECT_ID)')
@click.option('--prefix', help='Test object key prefix (overrides GCS_TEST_FILE_PREFIX)')
@click.option('--verbose', '-v', is_flag=True, help='Verbose logging')
@click.pass_context
def main(
    ctx: click.Context,
    config_file: Optional[str],
    bucket: Optional[str],
    project: Optional[str],
    prefix: Optional[str],
    verbose: bool,
) -> None:
    """gcseval - gcloud storage CLI test harness."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["verbose"] = verbose
    ctx.obj["overrides"] = {
        "bucket_name": bucket,
        "project_id": project,
        "test_file_prefix": prefix,
    }


@main.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Validate configuration, gcloud availability and authentication."""
    try:
        config = _load_config(ctx)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(2)

    cli = GCloudStorageCli.from_config(config)
    available = cli.is_available()
    authenticated = available and cli.is_authenticated()

    table = Table(title="Harness Check")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Bucket", config.bucket_uri)
    table.add_row("Project", config.project_id or "[yellow]not set[/yellow]")
    table.add_row("Test Prefix", config.test_file_prefix)
    table.add_row("Browser", f"{config.browser} ({'headless' if config.headless else 'headed'})")
    table.add_row("gcloud Available", "[green]Yes[/green]" if available else "[red]No[/red]")
    table.add_row("Authenticated", "[green]Yes[/green]" if authenticated else "[red]No[/red]")

    console.print(table)

    if not (available and authenticated):
        console.print("\n[red]Environment is not ready[/red]")
        sys.exit(1)
    console.print("\n[green]Environment is ready![/green]")


@main.command('ls')
@click.argument('path', required=False)
@click.option('--recursive', '-r', is_flag=True, help='List recursively')
@click.option('--json', 'json_output', is_flag=True, help='Output results as JSON')
@click.pass_context
def list_cmd(ctx: click.Context, path: Optional[str], recursive: bool, json_output: bool) -> None:
    """List object paths (defaults to the configured bucket)."""
    try:
        if path is None:
            path = _load_config(ctx).bucket_uri
        objects = _storage_cli(ctx).list_objects(path, recursive=recursive)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(2)
    except (ListFailure, CommandTimeout) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(objects, indent=2))
        return

    if not objects:
        console.print("[yellow]No objects matched[/yellow]")
        return
    for gs_path in objects:
        console.print(gs_path)


@main.command('sign-url')
@click.argument('path')
@click.option('--duration', '-d', type=int, help='Validity in minutes (default from config, else 60)')
@click.option('--validate', 'validate_url', is_flag=True, help='Open the URL in a browser and check it')
@click.option('--json', 'json_output', is_flag=True, help='Output results as JSON')
@click.option('--headed', is_flag=True, help='Run the browser in headed mode')
@click.pass_context
def sign_url(
    ctx: click.Context,
    path: str,
    duration: Optional[int],
    validate_url: bool,
    json_output: bool,
    headed: bool,
) -> None:
    """Generate a signed URL for an object, optionally validating it."""
    try:
        config: Optional[HarnessConfig] = _load_config(ctx)
    except ConfigurationError:
        config = None

    cli = GCloudStorageCli.from_config(config) if config else GCloudStorageCli()
    if duration is None:
        duration = config.signed_url_duration_minutes if config else 60

    try:
        url = cli.generate_signed_url(path, duration)
    except (SignFailure, ParseFailure, CommandTimeout) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if not validate_url:
        if json_output:
            click.echo(json.dumps({"path": path, "duration_minutes": duration, "url": url}, indent=2))
        else:
            click.echo(url)
        return

    result = _validate(url, config, headed)
    _report_validation(result, json_output)


@main.command('validate-url')
@click.argument('url')
@click.option('--json', 'json_output', is_flag=True, help='Output results as JSON')
@click.option('--headed', is_flag=True, help='Run the browser in headed mode')
@click.pass_context
def validate_url_cmd(ctx: click.Context, url: str, json_output: bool, headed: bool) -> None:
    """Open a signed URL in a browser and check status and phishing warnings."""
    try:
        config: Optional[HarnessConfig] = _load_config(ctx)
    except ConfigurationError:
        config = None

    result = _validate(url, config, headed)
    _report_validation(result, json_output)


@main.command()
@click.option('--suite', '-s', type=click.Choice(SUITES), help='Run only one scenario suite')
@click.option('--workers', '-n', type=int, help='Parallel worker processes')
@click.option('--failfast', '-x', is_flag=True, help='Stop on first failure')
@click.option('--tests-dir', default='tests/live', show_default=True, help='Live scenario directory')
@click.pass_context
def run(
    ctx: click.Context,
    suite: Optional[str],
    workers: Optional[int],
    failfast: bool,
    tests_dir: str,
) -> None:
    """Run the live gcloud storage scenarios with pytest."""
    import pytest

    extra = []
    overrides = _overrides(ctx)
    for option, key in (("--gcs-bucket", "bucket_name"), ("--gcs-project", "project_id"),
                        ("--gcs-prefix", "test_file_prefix")):
        if overrides.get(key):
            extra.extend([option, overrides[key]])
    if ctx.obj["config_file"]:
        extra.extend(["--gcs-config", ctx.obj["config_file"]])

    args = build_pytest_args(
        suite=suite,
        tests_dir=tests_dir,
        workers=workers,
        verbose=ctx.obj["verbose"],
        failfast=failfast,
        extra=extra,
    )
    console.print(f"[bold cyan]Running live scenarios[/bold cyan] [dim]pytest {' '.join(args)}[/dim]")
    sys.exit(int(pytest.main(args)))


def _validate(url: str, config: Optional[HarnessConfig], headed: bool) -> SignedUrlValidationResult:
    browser_type = config.browser if config else "firefox"
    headless = (config.headless if config else True) and not headed
    engine = shared_engine(browser_type=browser_type, headless=headless)
    validator = (
        SignedUrlValidator.from_config(config, engine=engine) if config
        else SignedUrlValidator(engine=engine)
    )
    try:
        return validator.validate(url)
    finally:
        shutdown_shared_engine()


def _report_validation(result: SignedUrlValidationResult, json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _display_validation(result)

    if result.verdict == Verdict.ERROR:
        sys.exit(2)
    if result.verdict == Verdict.FAIL:
        sys.exit(1)


def _display_validation(result: SignedUrlValidationResult) -> None:
    """Display a validation result in a formatted table."""
    table = Table(title="Signed URL Validation")
    table.add_column("Check", style="cyan")
    table.add_column("Value", style="white")

    verdict = result.verdict
    if verdict == Verdict.PASS:
        table.add_row("Verdict", "[green bold]PASS[/green bold]")
    elif verdict == Verdict.FAIL:
        table.add_row("Verdict", "[red bold]FAIL[/red bold]")
    else:
        table.add_row("Verdict", "[yellow bold]ERROR[/yellow bold]")

    status_color = "green" if result.status_code == 200 else "red"
    table.add_row("HTTP Status", f"[{status_color}]{result.status_code}[/{status_color}]")
    table.add_row(
        "Phishing Warning",
        f"[red bold]YES ({result.matched_indicator})[/red bold]" if result.phishing_detected else "No",
    )
    table.add_row("Download Started", "Yes" if result.download_started else "No")
    if result.page_title:
        table.add_row("Page Title", result.page_title)
    if result.screenshot_path:
        table.add_row("Screenshot", result.screenshot_path)
    if verdict == Verdict.ERROR and result.page_content:
        table.add_row("Error", result.page_content)

    console.print(table)


if __name__ == '__main__':
    main()
