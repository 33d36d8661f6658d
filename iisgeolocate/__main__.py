"""Entry point for ``python -m iisgeolocate``."""
from dotenv import load_dotenv

from iisgeolocate.cli import cli

load_dotenv()

if __name__ == "__main__":
    cli()
