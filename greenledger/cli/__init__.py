"""GreenLedger command line interface."""

from greenledger.cli.main import app

__all__ = ["app"]
