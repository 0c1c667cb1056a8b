# src/catalog_diff/cli.py
import logging
import time

import click

from catalog_diff.config import create_default_config, load_config
from catalog_diff.diff import diff_catalogs
from catalog_diff.hierarchy import build_hierarchy
from catalog_diff.index import CodeIndex
from catalog_diff.migration import load_migration_map
from catalog_diff.normalize import VARIANTS
from catalog_diff.search import search_codes
from catalog_diff.sources import FileCatalogSource, FileMigrationSource
from catalog_diff.utils import export_diff_to_csv, export_diff_to_parquet, summarize_diff

VARIANT = click.Choice(list(VARIANTS), case_sensitive=False)


def _sources(ctx, data_dir):
    config = ctx.obj["config"]
    return FileCatalogSource(data_dir, config), FileMigrationSource(data_dir, config)


def _run_diff(ctx, variant, old_year, new_year, data_dir, use_migrations=True, progress=True):
    catalogs, migrations = _sources(ctx, data_dir)
    try:
        old = catalogs.load_snapshot(variant, old_year)
        new = catalogs.load_snapshot(variant, new_year)
    except FileNotFoundError as e:
        raise click.ClickException(str(e))

    migration_map = None
    if use_migrations:
        raw = migrations.load_raw(variant, old_year, new_year)
        migration_map = load_migration_map(raw, variant, old_year, new_year)
        if not migration_map.has_migration_data:
            click.echo("No crosswalk data, removed/added codes are reported as deprecated/new")

    return diff_catalogs(old, new, variant, migration_map, show_progress=progress)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", default=None, help="YAML config file")
@click.pass_context
def cli(ctx, verbose, config_path):
    """ICD/OPS catalog diff CLI"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        raise click.ClickException(str(e))
    ctx.obj = {"config": config}


@cli.command()
@click.argument("variant", type=VARIANT)
@click.argument("old_year")
@click.argument("new_year")
@click.option("--data-dir", default=None, help="Catalog base directory (overrides config)")
@click.option("--output", "-o", default=None, help="Write the diff to this CSV or .parquet file")
@click.option("--include-unchanged", is_flag=True, help="Also write unchanged codes")
@click.option("--no-migrations", is_flag=True, help="Ignore crosswalk files")
@click.option("--progress/--no-progress", default=True, help="Show progress bar")
@click.pass_context
def diff(ctx, variant, old_year, new_year, data_dir, output, include_unchanged, no_migrations, progress):
    """Compare two catalog years."""
    variant = variant.lower()
    start_time = time.time()
    entries = _run_diff(
        ctx, variant, old_year, new_year, data_dir,
        use_migrations=not no_migrations, progress=progress,
    )
    end_time = time.time()

    click.echo(f"Compared {len(entries):,} {variant} codes in {end_time - start_time:.2f} seconds")
    summary = summarize_diff(entries)
    if summary.empty:
        click.echo("No codes found in either year")
    else:
        click.echo(summary.to_string(index=False))

    if output:
        if output.endswith(".parquet"):
            rows = export_diff_to_parquet(entries, output, include_unchanged=include_unchanged)
        else:
            rows = export_diff_to_csv(entries, output, include_unchanged=include_unchanged)
        click.echo(f"Saved to {output}: {rows:,} rows")


@cli.command()
@click.argument("variant", type=VARIANT)
@click.argument("old_year")
@click.argument("new_year")
@click.option("--data-dir", default=None, help="Catalog base directory (overrides config)")
@click.option("--expand", "expand_chapters", multiple=True, help="Chapter key to expand into groups")
@click.option("--no-migrations", is_flag=True, help="Ignore crosswalk files")
@click.pass_context
def tree(ctx, variant, old_year, new_year, data_dir, expand_chapters, no_migrations):
    """Show the diff rolled up by chapter and group."""
    variant = variant.lower()
    entries = _run_diff(
        ctx, variant, old_year, new_year, data_dir,
        use_migrations=not no_migrations, progress=False,
    )
    expand = {key.upper() for key in expand_chapters}

    for chapter in build_hierarchy(entries, variant):
        c = chapter.counts
        click.echo(
            f"{chapter.title}: {c.total} codes "
            f"(added {c.added}, removed {c.removed}, changed {c.changed})"
        )
        if chapter.key.upper() not in expand:
            continue
        for group in chapter.groups:
            g = group.counts
            click.echo(
                f"  {group.title}: {g.total} codes "
                f"(added {g.added}, removed {g.removed}, changed {g.changed})"
            )
            for entry in group.codes:
                sub = f"/{entry.sub_status}" if entry.sub_status else ""
                click.echo(f"    {entry.code} [{entry.status}{sub}] {entry.description}")


@cli.command()
@click.argument("variant", type=VARIANT)
@click.argument("year")
@click.argument("query", nargs=-1, required=True)
@click.option("--data-dir", default=None, help="Catalog base directory (overrides config)")
@click.option("--children", is_flag=True, help="Expand parent codes into their children")
@click.pass_context
def search(ctx, variant, year, query, data_dir, children):
    """Look up codes in one catalog year."""
    variant = variant.lower()
    catalogs, _ = _sources(ctx, data_dir)
    try:
        snapshot = catalogs.load_snapshot(variant, year)
    except FileNotFoundError as e:
        raise click.ClickException(str(e))

    result = search_codes(" ".join(query), CodeIndex(snapshot), show_child_codes=children)
    for hit in result.results:
        indent = "  " if hit.is_expanded_child else ""
        marker = "" if hit.is_terminal else " (non-terminal)"
        click.echo(f"{indent}{hit.code}{marker}: {hit.description}")
    if result.duplicates_removed:
        click.echo(f"Removed {result.duplicates_removed} duplicate codes")
    for error in result.errors:
        click.echo(error, err=True)


@cli.command()
@click.option("--data-dir", default=None, help="Catalog base directory (overrides config)")
@click.pass_context
def years(ctx, data_dir):
    """List catalog years available per variant."""
    catalogs, _ = _sources(ctx, data_dir)
    for variant in VARIANTS:
        available = catalogs.available_years(variant)
        click.echo(f"{variant}: {', '.join(available) if available else '-'}")


@cli.command("init-config")
@click.argument("path")
def init_config(path):
    """Write the default configuration to PATH."""
    if create_default_config(path):
        click.echo(f"Created {path}")
    else:
        raise click.ClickException(f"Config file already exists: {path}")


if __name__ == "__main__":
    cli()
