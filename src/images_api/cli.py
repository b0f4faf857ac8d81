# cli.py
import logging
from urllib.parse import urlsplit, urlunsplit

import click

from database.errors import PersistenceError
from images_api.config.settings import get_settings

logger = logging.getLogger(__name__)


def _redact_uri(uri: str) -> str:
    """Hide the password part of a connection string."""
    parts = urlsplit(uri)
    if parts.password is None:
        return uri
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


@click.group()
def cli():
    """CLI commands for the Images API"""
    pass


@cli.command()
@click.option("--host", default=None, help="Interface to bind (defaults to HOST)")
@click.option("--port", default=None, type=int, help="Port to listen on (defaults to PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host, port, reload):
    """Run the API with uvicorn"""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "images_api.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    click.echo("Current Configuration:")
    click.echo(f"  Listen: {settings.host}:{settings.port}")
    click.echo(f"  Store Backend: {settings.store_backend}")
    click.echo(f"  MongoDB URI: {_redact_uri(settings.mongo_uri)}")
    click.echo(f"  MongoDB Collection: {settings.mongo_collection}")
    click.echo(f"  SQLite Path: {settings.sqlite_path}")
    click.echo(f"  Upload Directory: {settings.upload_dir}")
    click.echo(f"  Public Prefix: {settings.public_prefix}")
    click.echo(f"  Max File Size: {settings.max_file_size} bytes")
    click.echo(f"  Max Files Per Upload: {settings.max_files}")
    click.echo(f"  Static Directory: {settings.static_dir or '-'}")


@cli.command()
def list_images():
    """Print the stored image paths, newest first"""
    from images_api.main import build_image_store

    settings = get_settings()
    image_store = build_image_store(settings)
    try:
        records = image_store.list_all()
    except PersistenceError as e:
        raise click.ClickException(e.message)
    finally:
        image_store.close()

    if not records:
        click.echo("No images stored")
        return
    for record in records:
        click.echo(f"{record.uploaded_at.isoformat()}  {record.path}")


if __name__ == "__main__":
    cli()
