from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()

if __name__ == "__main__":
    from iisgeolocate.cli import cli

    cli()
