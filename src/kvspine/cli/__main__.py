"""Allow ``python -m kvspine.cli``."""

from kvspine.cli.app import app

app()
