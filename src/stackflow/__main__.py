"""Module entry point: ``python -m stackflow``."""

from stackflow.cli import app

if __name__ == "__main__":
    app()
