import json

import click

from . import __version__
from .finops import DEFAULT_PRICING_TABLE
from .models import UsageMetrics
from .orchestrator import DEFAULT_ROUTES


def get_version():
    return __version__


def run_server(host=None, port=None, reload=False):
    from .server import start_server

    start_server(host=host, port=port, reload=reload)


@click.group()
def cli():
    """Creative AI generation service."""


@cli.command()
@click.option("--format", default="text", type=click.Choice(["text", "json"]))
def version(format):
    if format == "json":
        click.echo(json.dumps({"version": get_version()}))
    else:
        click.echo(f"v{get_version()}")


@cli.command()
@click.option("--host", default=None)
@click.option("--port", default=None, type=int)
@click.option("--reload", is_flag=True)
def serve(host, port, reload):
    run_server(host, port, reload)


@cli.command()
@click.argument("model")
@click.option("--input-tokens", default=0, type=int)
@click.option("--output-tokens", default=0, type=int)
@click.option("--images", default=0, type=int)
@click.option("--image-size", default="1K", type=click.Choice(["1K", "2K", "4K"]))
@click.option("--video-seconds", default=0.0, type=float)
def price(model, input_tokens, output_tokens, images, image_size, video_seconds):
    """Estimate the cost of one call in cents."""
    if model not in DEFAULT_PRICING_TABLE:
        raise click.ClickException(f"Unknown model: {model}")
    usage = UsageMetrics(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        image_count=images,
        image_size=image_size,
        video_duration_seconds=video_seconds,
    )
    cost = DEFAULT_PRICING_TABLE.cost(model, usage)
    click.echo(f"{model}: {cost:.2f} cents")


@cli.command()
@click.option("--format", default="text", type=click.Choice(["text", "json"]))
def models(format):
    """List routable models."""
    rows = [
        {
            "model": route.hint,
            "modality": route.modality.value,
            "primary": route.primary_model,
            "secondary": route.secondary_family.value if route.secondary_family else None,
        }
        for route in DEFAULT_ROUTES.values()
    ]
    if format == "json":
        click.echo(json.dumps(rows))
        return
    for row in rows:
        click.echo(f"{row['model']:<40} {row['modality']:<7} {row['primary'] or '-':<32} {row['secondary'] or '-'}")


if __name__ == "__main__":
    cli()
