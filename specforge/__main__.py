# specforge/__main__.py
"""Entry point for `python -m specforge`."""

from specforge.cli import app

if __name__ == "__main__":
    app()
