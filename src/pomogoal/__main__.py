"""Entry point for ``python -m pomogoal``."""

from pomogoal.cli.main import app

if __name__ == "__main__":
    app()
