import typer
import logging
import sys

from kubeboot.commands import cluster
from kubeboot.config import Config
from kubeboot.logging import setup_logging

app = typer.Typer(help="kubeboot - single-node Kubernetes clusters with kubeadm")

# Global debug flag
debug_mode = False

# Add all command groups
app.add_typer(cluster.app, name="cluster")


# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """kubeboot - bootstrap and maintain a kubeadm cluster."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug)
    try:
        Config.validate()
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
    if debug:
        logging.getLogger("kubeboot").debug("Debug mode enabled")


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)
