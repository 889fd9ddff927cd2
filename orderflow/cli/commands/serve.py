"""HTTP API server command."""

from typing import Optional

import click

from orderflow.cli.output.formatters import print_error, print_info


@click.command(name="serve")
@click.option("--host", default=None, help="Bind address (default: ORDERFLOW_API_HOST or 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Port (default: ORDERFLOW_API_PORT or 8686)")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """
    Serve the orders HTTP API with uvicorn.

    Examples:

        orderflow --store postgres --dsn postgresql://localhost/orders serve --port 8080
    """
    try:
        import uvicorn
    except ImportError as e:
        print_error(f"Failed to import uvicorn: {e}")
        print_error("Install the server extra: pip install 'orderflow[server]'")
        raise click.Abort()

    from orderflow.api.config import Settings
    from orderflow.api.server import create_app

    settings = Settings()
    bind_host = host or settings.host
    bind_port = port or settings.port

    print_info(f"Serving orderflow API on http://{bind_host}:{bind_port}")
    uvicorn.run(
        create_app(settings=settings),
        host=bind_host,
        port=bind_port,
        log_level="debug" if ctx.obj.get("verbose") else "info",
    )
