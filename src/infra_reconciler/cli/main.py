"""Main CLI entry point."""

import json
import signal
import sys
import threading
from contextlib import contextmanager

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from infra_reconciler.config.parser import DEFAULT_CONFIG_FILE, Config
from infra_reconciler.confirmation import ClickConfirmation
from infra_reconciler.factory import Components, build_catalog, build_components
from infra_reconciler.orchestrator.executor import ExecutionStatus
from infra_reconciler.orchestrator.reporter import ConvergenceSummary
from infra_reconciler.utils.errors import ConfigurationError, ReconcileError
from infra_reconciler.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

EXIT_CONVERGED = 0
EXIT_NEEDS_ATTENTION = 1
EXIT_CONFIGURATION_ERROR = 2


@click.group()
@click.option('--config', 'config_path', default=DEFAULT_CONFIG_FILE, show_default=True,
              help='Path to configuration file')
@click.option('--env', 'environment', envvar='TF_VAR_environment', default='dev', show_default=True,
              help='Environment name')
@click.option('--project', envvar='TF_VAR_project_name', help='Override project name')
@click.option('--environment-tag', envvar='ENVIRONMENT_TAG', help='Suffix for per-deployment resource names')
@click.option('--region', envvar=['TF_VAR_location', 'AWS_REGION'], help='AWS region or Azure location')
@click.option('--profile', envvar='AWS_PROFILE', help='AWS profile to use')
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.pass_context
def cli(ctx, config_path, environment, project, environment_tag, region, profile, log_level):
    """Reconcile cloud resources with Terraform state before apply."""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    ctx.obj['environment'] = environment
    ctx.obj['overrides'] = {
        'project_name': project,
        'environment_tag': environment_tag,
        'region': region,
        'profile': profile,
    }

    setup_logging(log_level)


def load_settings(ctx):
    """Resolve settings from the config file and command line."""
    config = Config(ctx.obj['config_path']).load()
    return config.settings(ctx.obj['environment'], ctx.obj['overrides'])


def load_components(ctx) -> Components:
    """Build all run components for the selected environment."""
    settings = load_settings(ctx)
    return build_components(settings, console=console)


def exit_for(summary: ConvergenceSummary) -> None:
    sys.exit(EXIT_CONVERGED if summary.is_converged() else EXIT_NEEDS_ATTENTION)


def fail(error: Exception) -> None:
    """Report an error that aborted the run and exit."""
    if isinstance(error, ConfigurationError):
        console.print(f"[red]Configuration error:[/red]\n{error.to_user_message()}")
        sys.exit(EXIT_CONFIGURATION_ERROR)
    if isinstance(error, ReconcileError):
        console.print(f"[red]Error:[/red]\n{error.to_user_message()}")
        sys.exit(EXIT_NEEDS_ATTENTION)
    logger.exception("Unexpected error")
    console.print(f"[red]Unexpected error:[/red] {error}")
    sys.exit(EXIT_NEEDS_ATTENTION)


@contextmanager
def cancel_on_interrupt():
    """First Ctrl-C stops after the current action; the second aborts."""
    cancel_event = threading.Event()

    def handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        console.print("\n[yellow]Cancelling after the current action (Ctrl-C again to abort)...[/yellow]")
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield cancel_event
    finally:
        signal.signal(signal.SIGINT, previous)


def reconcile(components: Components):
    """Run a full reconciliation with a progress display."""
    with cancel_on_interrupt() as cancel_event, Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True
    ) as progress:
        task_id = progress.add_task("[cyan]Reconciling...", total=len(components.catalog))

        def on_progress(logical_name: str, status: ExecutionStatus, reason):
            progress.update(task_id, advance=1, description=f"[cyan]{logical_name}[/cyan] {status.value}")

        return components.reconciler.run(cancel_event=cancel_event, progress_callback=on_progress)


def ensure_initialized(components: Components) -> None:
    if not components.engine.is_initialized():
        console.print("[cyan]Initializing Terraform...[/cyan]")
        components.engine.init()


@cli.command()
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']), default='table')
@click.pass_context
def plan(ctx, output_format):
    """Show what reconciliation would do, without changing anything."""
    try:
        components = load_components(ctx)
        reconciler = components.reconciler
        reconciliation_plan = reconciler.plan_only()
        summary = reconciler.reporter.report_plan(reconciliation_plan)

        if output_format == 'json':
            click.echo(json.dumps({
                'actions': [
                    {
                        'logical_name': a.logical_name,
                        'address': a.address,
                        'action': a.action_type.value,
                        'native_id': a.native_id,
                        'reason': a.reason.value if a.reason else None,
                        'detail': a.detail,
                    }
                    for a in reconciliation_plan
                ],
                'summary': summary.to_dict(),
            }, indent=2))
        else:
            reconciler.reporter.render_plan(reconciliation_plan)
            reconciler.reporter.render(summary, title="Plan summary")
    except Exception as e:
        fail(e)

    exit_for(summary)


@cli.command(name='import-if-missing')
@click.option('--init/--no-init', default=True, help='Run terraform init when the working directory is not initialized')
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']), default='table')
@click.pass_context
def import_if_missing(ctx, init, output_format):
    """Import resources that exist in the cloud but are not tracked."""
    try:
        components = load_components(ctx)
        if init:
            ensure_initialized(components)

        result = reconcile(components)
        summary = result.summary

        if output_format == 'json':
            click.echo(json.dumps(summary.to_dict(), indent=2))
        else:
            components.reconciler.reporter.render(summary)
    except Exception as e:
        fail(e)

    exit_for(summary)


@cli.command()
@click.option('--auto-approve/--no-auto-approve', default=False, help='Skip the apply confirmation prompt')
@click.option('--plan-file', default='tfplan', show_default=True, help='Saved plan file name')
@click.pass_context
def apply(ctx, auto_approve, plan_file):
    """Reconcile, then plan and apply with Terraform."""
    try:
        components = load_components(ctx)
        settings = components.settings

        console.print(Panel.fit(
            f"[bold]Applying {settings.project.name}-{settings.environment.name}[/bold]\n"
            f"Provider: {settings.provider}\n"
            f"Terraform: {settings.terraform_dir}\n"
            f"Resources in catalog: {len(components.catalog)}",
            title="Idempotent Apply",
            border_style="cyan"
        ))

        ensure_initialized(components)

        result = reconcile(components)
        components.reconciler.reporter.render(result.summary)
        if not result.is_converged():
            console.print("[yellow]Not applying until the items above are resolved.[/yellow]")
            sys.exit(EXIT_NEEDS_ATTENTION)

        console.print("[cyan]Planning changes...[/cyan]")
        console.print(components.engine.plan(out=plan_file))

        confirmation = ClickConfirmation(assume_yes=auto_approve)
        if not confirmation.confirm("Apply these changes?"):
            console.print("[yellow]Apply cancelled[/yellow]")
            sys.exit(EXIT_NEEDS_ATTENTION)

        console.print("[cyan]Applying changes...[/cyan]")
        console.print(components.engine.apply(plan_file))

        outputs = components.engine.output()
        if outputs:
            table = Table(title="Outputs", header_style="bold cyan")
            table.add_column("Name", style="cyan")
            table.add_column("Value", overflow="fold")
            for name, output in sorted(outputs.items()):
                value = "(sensitive)" if output.get('sensitive') else json.dumps(output.get('value'))
                table.add_row(name, value)
            console.print(table)

        console.print(Panel.fit("[green]✓ Apply complete[/green]", border_style="green"))
    except Exception as e:
        fail(e)

    sys.exit(EXIT_CONVERGED)


@cli.command(name='forget-stale')
@click.pass_context
def forget_stale(ctx):
    """Remove state entries whose cloud resources no longer exist."""
    try:
        components = load_components(ctx)
        result = components.reconciler.forget_stale(ClickConfirmation())
        components.reconciler.reporter.render(result.summary, title="Forget stale entries")
    except Exception as e:
        fail(e)

    exit_for(result.summary)


@cli.command()
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']), default='table')
@click.pass_context
def catalog(ctx, output_format):
    """List the resources the reconciler manages, in dependency order."""
    try:
        resource_catalog = build_catalog(load_settings(ctx))
    except Exception as e:
        fail(e)

    descriptors = resource_catalog.all_descriptors()
    if output_format == 'json':
        click.echo(json.dumps([
            {
                'logical_name': d.logical_name,
                'kind': d.kind.value,
                'address': d.engine_address,
                'native_id': d.expected_id,
                'depends_on': list(d.depends_on),
                'importable': d.importable,
            }
            for d in descriptors
        ], indent=2))
        return

    table = Table(title=f"Catalog ({resource_catalog.naming.prefix})", header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Resource", style="cyan")
    table.add_column("Kind")
    table.add_column("Address", style="dim")
    table.add_column("Native ID", overflow="fold")
    for index, d in enumerate(descriptors, start=1):
        name = d.logical_name if d.importable else f"{d.logical_name} [yellow](not importable)[/yellow]"
        table.add_row(str(index), name, d.kind.value, d.engine_address, d.expected_id)
    console.print(table)


if __name__ == '__main__':
    cli()
