"""SamChat entry point."""

import asyncio
import sys

from dotenv import find_dotenv, load_dotenv

from .cli import run_cli, run_proactive


def main() -> None:
    """Main entry point."""
    load_dotenv(find_dotenv(usecwd=True))

    if len(sys.argv) > 1:
        command = sys.argv[1]

        if command == "proactive":
            try:
                asyncio.run(run_proactive())
            except KeyboardInterrupt:
                pass
            return

    asyncio.run(run_cli())


if __name__ == "__main__":
    main()
