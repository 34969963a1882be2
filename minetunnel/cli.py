"""
Mine Tunnel Studio CLI

Command-line front end for the reference library and image generation.

Usage:
    minetunnel albums                      - List albums
    minetunnel images ALBUM                - List images in an album
    minetunnel upload ALBUM FILE...        - Upload reference images
    minetunnel add-album NAME              - Create an empty album
    minetunnel delete-image ALBUM PATH     - Delete one image
    minetunnel delete-album NAME           - Delete an album and its images
    minetunnel rename-album OLD NEW        - Rename an album
    minetunnel reconcile [--repair]        - Find orphans and dangling references
    minetunnel generate "prompt"           - Generate an image
"""
import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from minetunnel import __version__
from minetunnel.config import Settings
from minetunnel.core.generator import ImageGenerationError, ImageGenerator, ReferenceImage
from minetunnel.storage import CorruptManifestError, ManifestRepository, StoreError, UploadFile, slugify

console = Console()


def fail(message: str) -> None:
    """Print an error and exit with status 1."""
    console.print(f"[red]✗ {escape(message)}[/red]")
    sys.exit(1)


def run_with_repository(settings: Settings, action):
    """Run an async action against a repository built from settings."""

    async def runner():
        async with ManifestRepository.from_config(settings.storage_config()) as repo:
            return await action(repo)

    try:
        return asyncio.run(runner())
    except CorruptManifestError as e:
        fail(f"{e}. Repair the file, or set MANIFEST_STRICT=false to reset the library.")
    except StoreError as e:
        if e.retryable:
            fail(f"{e} (temporary failure, try again)")
        fail(str(e))
    except ValueError as e:
        fail(str(e))


def with_spinner(message: str, coro):
    """Await a coroutine while showing a spinner."""

    async def wrapped():
        with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console, transient=True) as progress:
            progress.add_task(message, total=None)
            return await coro

    return wrapped()


@click.group()
@click.version_option(version=__version__, prog_name="Mine Tunnel Studio")
@click.option("--env-file", type=click.Path(dir_okay=False), default=None, help="Load settings from this file")
@click.pass_context
def main(ctx, env_file):
    """Mine Tunnel Studio - generate imagery and manage the reference library."""
    if env_file:
        load_dotenv(env_file, override=True)
    else:
        load_dotenv()

    try:
        settings = Settings()
    except ValidationError as e:
        fail(f"Invalid configuration: {e.errors()[0]['msg']}")

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj = settings


@main.command()
@click.pass_obj
def albums(settings):
    """List albums with their image counts."""
    manifest = run_with_repository(settings, lambda repo: repo.load_manifest())

    table = Table(title="Albums")
    table.add_column("Album", style="cyan")
    table.add_column("Images", justify="right")
    for name in manifest.album_names():
        table.add_row(name, str(len(manifest.albums[name])))
    console.print(table)


@main.command()
@click.argument("album")
@click.pass_obj
def images(settings, album):
    """List images in an album."""
    manifest = run_with_repository(settings, lambda repo: repo.load_manifest())
    if album not in manifest.albums:
        fail(f"Album '{album}' does not exist")

    table = Table(title=f"Album: {album}")
    table.add_column("Path", style="cyan")
    table.add_column("Created", style="dim")
    records = manifest.images(album)
    for record in records:
        table.add_row(record.path, record.created_at.isoformat())
    console.print(table)
    if not records:
        console.print("[dim]This album is empty.[/dim]")


@main.command()
@click.argument("album")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def upload(settings, album, files):
    """Upload FILES into ALBUM (created if missing)."""
    uploads = [UploadFile(name=f.name, content=f.read_bytes()) for f in files]
    manifest = run_with_repository(
        settings,
        lambda repo: with_spinner(f"Uploading {len(uploads)} file(s)...", repo.add_images(album, uploads)),
    )
    console.print(f"[green]✓ Successfully uploaded {len(uploads)} file(s)![/green]")
    for record in manifest.albums.get(slugify(album), [])[-len(uploads):]:
        console.print(f"  {record.path}")


@main.command("add-album")
@click.argument("name")
@click.pass_obj
def add_album(settings, name):
    """Create an empty album."""

    async def action(repo):
        await repo.load_manifest()
        return await repo.add_album(name)

    run_with_repository(settings, action)
    console.print(f"[green]✓ Successfully added album {slugify(name)}.[/green]")


@main.command("delete-image")
@click.argument("album")
@click.argument("path")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_obj
def delete_image(settings, album, path, yes):
    """Delete one image from ALBUM."""
    if not yes:
        click.confirm("Are you sure you want to delete this image? This action is permanent.", abort=True)
    run_with_repository(settings, lambda repo: repo.delete_image(album, path))
    console.print(f"[green]✓ Successfully deleted {path}.[/green]")


@main.command("delete-album")
@click.argument("name")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_obj
def delete_album(settings, name, yes):
    """Delete an album and all its images."""
    if not yes:
        click.confirm(f'Delete the album "{name}" and all its images? This is permanent.', abort=True)
    run_with_repository(
        settings,
        lambda repo: with_spinner(f"Deleting album {name}...", repo.delete_album(name)),
    )
    console.print(f"[green]✓ Successfully deleted album {name}.[/green]")


@main.command("rename-album")
@click.argument("old")
@click.argument("new")
@click.pass_obj
def rename_album(settings, old, new):
    """Rename album OLD to NEW (moves every image)."""

    async def action(repo):
        await repo.load_manifest()
        return await with_spinner(f"Renaming album {old}...", repo.rename_album(old, new))

    manifest = run_with_repository(settings, action)
    new_slug = slugify(new)
    count = len(manifest.albums.get(new_slug, []))
    console.print(f"[green]✓ Successfully renamed album to {new_slug} ({count} image(s) moved).[/green]")


@main.command()
@click.option("--repair", is_flag=True, help="Delete orphans and prune dangling references")
@click.pass_obj
def reconcile(settings, repair):
    """Compare the manifest against the stored files."""
    report = run_with_repository(settings, lambda repo: repo.reconcile(repair=repair))

    if report.clean:
        console.print("[green]✓ Manifest and store are consistent[/green]")
        return

    table = Table(title="Inconsistencies")
    table.add_column("Kind", style="yellow")
    table.add_column("Album")
    table.add_column("Path", style="cyan")
    for path in report.orphans:
        table.add_row("orphan", "", path)
    for album, path in report.dangling:
        table.add_row("dangling", album, path)
    console.print(table)
    if report.repaired:
        console.print("[green]✓ Repaired[/green]")
    else:
        console.print("[yellow]Run with --repair to fix[/yellow]")


@main.command()
@click.argument("prompt")
@click.option("--reference", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Local reference image")
@click.option("--library-ref", help="Library image path to use as reference")
@click.option("--output", "-o", type=click.Path(file_okay=False, path_type=Path), default=Path("output/generated"))
@click.pass_obj
def generate(settings, prompt, reference, library_ref, output):
    """Generate an image from PROMPT."""
    if reference and library_ref:
        fail("Use either --reference or --library-ref, not both")
    if not settings.has_image_generation:
        fail("GOOGLE_API_KEY not configured")

    ref = None
    if reference:
        ref = ReferenceImage.from_file(reference)
    elif library_ref:
        data = run_with_repository(settings, lambda repo: repo.fetch_reference(library_ref))
        ref = ReferenceImage.from_library_path(library_ref, data)

    generator = ImageGenerator(
        api_key=settings.GOOGLE_API_KEY,
        image_model=settings.IMAGE_MODEL,
        edit_model=settings.EDIT_MODEL,
    )
    try:
        image = asyncio.run(with_spinner("Generating image...", generator.generate(prompt, ref)))
    except ImageGenerationError as e:
        fail(f"Generation failed: {e}")

    output.mkdir(parents=True, exist_ok=True)
    target = output / f"{image.id}.{image.extension}"
    target.write_bytes(image.data)
    console.print(f"[green]✓ Image generated successfully![/green] {target}")


if __name__ == "__main__":
    main()
