"""Allow ``python -m jobhost``."""

from jobhost.cli.app import app

if __name__ == "__main__":
    app()
