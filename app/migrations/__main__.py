import argparse
import asyncio
import sys

from app.core.database import engine
from app.migrations.scripts import MIGRATIONS, run_migration


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="python -m app.migrations", description="Run a one-shot migration")
    parser.add_argument("name", choices=sorted(MIGRATIONS), help="Migration to run")
    args = parser.parse_args(argv)
    return asyncio.run(run_migration(args.name, engine))


if __name__ == "__main__":
    sys.exit(main())
