# pagewright/cli.py
from __future__ import annotations

"""Command-line interface
------------------------
Inspect settings, list and validate page files, and enter a page in a real
browser to check that its recognition rules hold.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import click

from pagewright.core.page_loader import find_page_files, load_pages, load_registry
from pagewright.errors import PagewrightError
from pagewright.utils.config import get_settings
from pagewright.utils.logger import bind, get_logger, set_log_level, unbind


# -------- helpers --------


def _echo_json(obj) -> None:
    click.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _resolve_paths(paths: List[str]) -> List[Path]:
    return [Path(p).resolve() for p in paths]


# -------- CLI root --------


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL from settings",
)
@click.version_option(package_name="pagewright")
def cli(log_level: Optional[str]):
    _ = get_settings()
    if log_level:
        set_log_level(log_level.upper())


# -------- commands --------


@cli.command("config")
def cmd_config():
    """Print effective configuration (after .env & env vars)."""
    s = get_settings()
    data = s.model_dump(mode="json")
    if data.get("PROXY_PASSWORD"):
        data["PROXY_PASSWORD"] = "[redacted]"
    _echo_json(data)


@cli.command("list")
@click.option(
    "--dir", "pages_dir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=lambda: str(get_settings().PAGES_DIR),
    show_default=True,
    help="Directory containing page YAML files",
)
@click.option("--recursive/--no-recursive", default=True, show_default=True)
def cmd_list(pages_dir: str, recursive: bool):
    """List pages defined in a directory."""
    rows = []
    known: dict = {}
    for fp in find_page_files(Path(pages_dir), recursive=recursive):
        try:
            rows.extend((fp, page) for page in load_pages(fp, known))
        except (ValueError, PagewrightError):
            # invalid files are reported by `validate`
            continue

    if not rows:
        click.echo("No pages found.")
        return

    click.echo(f"Found {len(rows)} page(s):\n")
    for fp, page in rows:
        click.echo(
            f" - {page.name}  ({len(page.elements)} elements, "
            f"{len(page.validator_elements)} validators)  <- {fp}"
        )


@cli.command("validate")
@click.argument("targets", nargs=-1, required=False)
@click.option("--dir", "pages_dir", type=click.Path(file_okay=False, dir_okay=True, exists=True), help="Validate all page files under this directory")
@click.option("--recursive/--no-recursive", default=True, show_default=True)
def cmd_validate(targets: List[str], pages_dir: Optional[str], recursive: bool):
    """Validate page files (supports multi-doc YAML)."""
    paths: list[Path] = []
    if targets:
        for p in _resolve_paths(targets):
            if p.is_dir():
                paths.extend(find_page_files(p, recursive=True))
            else:
                paths.append(p)
    elif pages_dir:
        paths.extend(find_page_files(Path(pages_dir), recursive=recursive))
    else:
        click.echo("Provide file(s) or --dir to validate.")
        sys.exit(2)

    ok = True
    known: dict = {}
    for fp in paths:
        try:
            for page in load_pages(fp, known):
                click.echo(f"OK  {fp}  ->  {page.name} ({len(page.elements)} elements)")
        except (ValueError, FileNotFoundError, PagewrightError) as e:
            ok = False
            click.echo(f"ERR {fp}  ->  {e}")

    sys.exit(0 if ok else 1)


@cli.command("enter")
@click.argument("pages_file", type=click.Path(exists=True))
@click.argument("page_name")
@click.option("--base-url", default=None, help="Override BASE_URL for :base_url substitution")
@click.option("--headless/--headed", default=None, help="Override HEADLESS from settings")
@click.option("--replay/--no-replay", default=None, help="Write an HTML replay log (overrides REPLAY_ENABLED)")
def cmd_enter(pages_file: str, page_name: str, base_url: Optional[str], headless: Optional[bool], replay: Optional[bool]):
    """
    Open a browser, enter PAGE_NAME through its entry URL and report whether
    the page was recognised.

    Examples:
      pagewright enter pages/github.yaml LoginPage --base-url https://github.com
    """
    # imported here so the file-only commands work without browsers installed
    from pagewright.capture.replay import ReplayLog
    from pagewright.core.session import Session
    from pagewright.driver.playwright_driver import launch_driver

    settings = get_settings()
    updates = {}
    if headless is not None:
        updates["HEADLESS"] = headless
    if replay is not None:
        updates["REPLAY_ENABLED"] = replay
    if updates:
        settings = settings.model_copy(update=updates)
    log = get_logger(__name__)

    try:
        registry = load_registry(pages_file, base_url=base_url if base_url is not None else settings.BASE_URL)
    except (ValueError, PagewrightError) as e:
        click.echo(f"ERR {pages_file}  ->  {e}")
        sys.exit(2)

    run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    bind(run_id=run_id, page=page_name)
    replay_log = ReplayLog(f"{page_name}_{run_id}", settings=settings) if settings.REPLAY_ENABLED else None
    try:
        with launch_driver(settings) as driver:
            session = Session(driver, registry, settings=settings, replay=replay_log)
            try:
                page = session.enter(page_name)
            except PagewrightError as e:
                log.error(f"Could not enter {page_name}: {e}")
                click.echo(f"FAIL {page_name}  ->  {e}")
                sys.exit(1)
            click.echo(f"OK  {page.name}  ->  {driver.current_url()}")
    finally:
        if replay_log is not None:
            replay_log.close()
            click.echo(f"Replay log: {replay_log.index}")
        unbind("run_id", "page")


if __name__ == "__main__":
    cli()
