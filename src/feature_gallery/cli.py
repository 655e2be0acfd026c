"""Command-line interface for the feature gallery."""

import asyncio
import sys
from pathlib import Path

import click

from .config import Config, get_default_config_path, create_example_config
from .cli_utils import close_session, echo, fail, load_session, set_quiet_mode
from .error_handler import get_error_handler
from .logging_config import setup_logging
from .output_formatter import OutputFormatter, FORMATS
from .selection import SelectionStateMachine, ViewKind
from .session import list_tracks

MODE_CHOICES = {
    'images': ViewKind.IMAGE_GALLERY,
    'text': ViewKind.TEXTUAL_DESCRIPTIONS,
}


@click.group(invoke_without_command=True)
@click.option('--config', type=click.Path(exists=True), help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress all output except errors')
@click.option('--log-dir', type=click.Path(), help='Directory for log files')
@click.option('--no-log-file', is_flag=True, help='Disable file logging')
@click.option('--service-url', envvar='FEATURE_GALLERY_SERVICE_URL', help='Feature service base URL')
@click.option('--generate-config', is_flag=True, help='Generate example configuration file')
@click.pass_context
def cli(ctx, config, verbose, quiet, log_dir, no_log_file, service_url, generate_config):
    """Feature gallery tool.

    Pick an assembly and an annotation track, find features by name, and
    list the images or text attached to them.

    Examples:
        feature-gallery tracks session.json hg38
        feature-gallery search session.json hg38 genes BRCA
        feature-gallery content session.json hg38 genes BRCA --select BRCA1
    """
    # Handle quiet and verbose modes
    if quiet and verbose:
        click.echo("Error: Cannot use both --quiet and --verbose", err=True)
        sys.exit(1)

    set_quiet_mode(quiet)

    # Handle config generation
    if generate_config:
        config_path = create_example_config()
        echo(f"Generated example configuration file: {config_path}")
        sys.exit(0)

    if ctx.invoked_subcommand is None:
        echo(ctx.get_help())
        return

    # Load configuration
    config_path = Path(config) if config else get_default_config_path()

    try:
        cfg = Config.from_file(config_path)
        cfg.merge_env_vars()
    except (OSError, ValueError, TypeError) as e:
        fail(f"Failed to read configuration {config_path}: {e}")

    cfg.merge_cli_args(
        service_url=service_url,
        log_dir=log_dir,
        no_log_file=no_log_file,
        verbose=verbose
    )

    setup_logging(
        log_level=cfg.logging.level,
        log_dir=cfg.logging.directory,
        colors=cfg.logging.colors,
        quiet=quiet
    )

    ctx.obj = cfg


@cli.command()
@click.argument('session_file', type=click.Path(exists=True))
@click.argument('assembly')
@click.option('--all', 'show_all', is_flag=True, help='Include tracks with unsupported adapters')
@click.pass_obj
def tracks(cfg, session_file, assembly, show_all):
    """List the tracks of ASSEMBLY."""
    session = load_session(session_file, cfg.service)

    if assembly not in session.assembly_names():
        fail(f"Unknown assembly: {assembly}")

    infos = list_tracks(session, assembly, compatible_only=not show_all)
    if not infos:
        echo(f"No compatible tracks for {assembly}")
        return

    for info in infos:
        marker = '' if info.is_compatible else '\t(unsupported)'
        click.echo(f"{info.track_id}\t{info.name}\t{info.adapter_type}{marker}")


def _run_search(cfg, session, assembly, track, query, kind, recursive=False):
    """Drive the state machine through assembly, track and query selection."""
    if assembly not in session.assembly_names():
        fail(f"Unknown assembly: {assembly}")
    if track not in {info.track_id for info in list_tracks(session, assembly)}:
        fail(f"Track {track} is missing or has an unsupported adapter")
    if len(query.strip()) < cfg.search.min_query_length:
        fail(f"Query must be at least {cfg.search.min_query_length} characters")

    error_handler = get_error_handler()
    machine = SelectionStateMachine(
        session,
        config=cfg,
        kind=kind,
        error_handler=error_handler,
        recursive_content=recursive
    )
    machine.set_selected_assembly(assembly)
    machine.set_selected_track(track)
    outcome = asyncio.run(machine.set_search_term(query))
    return machine, outcome


@cli.command()
@click.argument('session_file', type=click.Path(exists=True))
@click.argument('assembly')
@click.argument('track')
@click.argument('query')
@click.option('--format', 'output_format', type=click.Choice(FORMATS), default='tsv', help='Output format')
@click.option('--mode', type=click.Choice(list(MODE_CHOICES)), default='images', help='Content kind attached to results')
@click.option('--output', '-o', type=click.Path(), help='Write results to a file instead of stdout')
@click.pass_obj
def search(cfg, session_file, assembly, track, query, output_format, mode, output):
    """Search TRACK in ASSEMBLY for features matching QUERY."""
    session = load_session(session_file, cfg.service)
    try:
        machine, outcome = _run_search(cfg, session, assembly, track, query, MODE_CHOICES[mode])
    finally:
        close_session(session)

    results = machine.state.search_results
    if not results:
        echo(f"No features found matching '{query}'")
        return

    formatter = OutputFormatter(output_format)
    text = formatter.format_results(results, tier=outcome.tier if outcome else None, query=query)

    if output:
        try:
            formatter.write(text, output)
        except OSError as e:
            fail(f"Failed to write output file: {e}")
        echo(f"{len(results)} result(s) written to: {output}")
    else:
        click.echo(text, nl=False)


@cli.command()
@click.argument('session_file', type=click.Path(exists=True))
@click.argument('assembly')
@click.argument('track')
@click.argument('query')
@click.option('--select', 'feature_id', required=True, help='Result ID to show content for')
@click.option('--format', 'output_format', type=click.Choice(FORMATS), default='tsv', help='Output format')
@click.option('--mode', type=click.Choice(list(MODE_CHOICES)), default='images', help='Content kind to show')
@click.pass_obj
def content(cfg, session_file, assembly, track, query, feature_id, output_format, mode):
    """Show the content attached to one search result and its sub-features."""
    kind = MODE_CHOICES[mode]
    session = load_session(session_file, cfg.service)
    try:
        machine, _ = _run_search(cfg, session, assembly, track, query, kind, recursive=True)
    finally:
        close_session(session)

    if not any(r.id == feature_id for r in machine.state.search_results):
        fail(f"No result with ID {feature_id} for '{query}'")

    machine.set_selected_feature(feature_id)

    if output_format != 'json':
        echo(machine.display_title)
    if not machine.has_content:
        echo(f"No {machine.mode.name} content for {feature_id}")
        return

    formatter = OutputFormatter(output_format)
    click.echo(formatter.format_content(machine.state.content, machine.mode, feature_id), nl=False)


def main():
    cli()


if __name__ == '__main__':
    main()
