"""cluster-spine command line interface."""

from clusterspine.cli.app import app

__all__ = ["app"]
