# browser_control/command/browser_control_server.py

import sys

import click
import uvicorn
from dotenv import load_dotenv

from browser_control.browser.control_plane import build_control_plane
from browser_control.browser.settings import ControlPlaneSettings
from browser_control.command.command_utils import setup_command_logger
from browser_control.server.app import create_app


@click.command(name="browser-control-server")
@click.option(
    '--env-file', '-e',
    default=None,
    help='Path to a .env file with BROWSERBASE_* and BROWSER_CONTROL_* settings.',
    type=click.Path(exists=True, dir_okay=False)
)
@click.option(
    '--host', '-H',
    default=None,
    help='Host address to run the server on (defaults to HOST or 0.0.0.0).',
)
@click.option(
    '--port', '-p',
    default=None,
    type=int,
    help='Port number to run the server on (defaults to PORT or 3001).',
)
@click.option(
    '--verbose', '-v',
    is_flag=True,
    help='Enable verbose logging.'
)
def run(env_file, host, port, verbose):
    """
    Starts the browser control server using FastAPI.
    """
    load_dotenv(env_file)
    logger = setup_command_logger(log_filename="browser-control-server.log", verbose=verbose)

    settings = ControlPlaneSettings.from_env()
    host = host or settings.host
    port = port or settings.port

    try:
        control_plane = build_control_plane(settings)
    except Exception as e:
        logger.error(f"Failed to initialize control plane: {e}")
        click.echo(f"Error: Failed to initialize control plane: {e}")
        sys.exit(1)

    app = create_app(control_plane=control_plane, settings=settings)

    try:
        logger.info(f"Starting server at http://{host}:{port} cloud={settings.use_cloud}")
        uvicorn.run(app, host=host, port=port)
    except Exception as e:
        logger.error(f"Server encountered an error: {e}")
        sys.exit(1)
    finally:
        logger.info("Server has been stopped.")


if __name__ == "__main__":
    run()
