# Seed sample data, or export/import a JSON snapshot of every table
import argparse
import asyncio
import json

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from trafficdesk.core.database import AsyncSessionLocal, engine, init_models  # noqa: E402
from trafficdesk.core.logging_config import setup_logging  # noqa: E402
from trafficdesk.services.seed import export_data, import_data, seed_sample_data  # noqa: E402


async def main(args) -> None:
    await init_models()
    async with AsyncSessionLocal() as session:
        if args.export_path:
            snapshot = await export_data(session)
            with open(args.export_path, "w", encoding="utf-8") as handle:
                json.dump(snapshot, handle, indent=2)
            print(f"Exported {sum(len(rows) for rows in snapshot.values())} rows to {args.export_path}")
        elif args.import_path:
            with open(args.import_path, encoding="utf-8") as handle:
                counts = await import_data(session, json.load(handle))
            print(f"Imported {counts}")
        else:
            counts = await seed_sample_data(session)
            print(f"Inserted {counts}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed or back up the trafficdesk database")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--export", dest="export_path", help="write every table to this JSON file")
    group.add_argument("--import", dest="import_path", help="replace every table from this JSON file")

    setup_logging()
    asyncio.run(main(parser.parse_args()))
