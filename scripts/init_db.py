# Create (or recreate) the trafficdesk tables on DATABASE_URL
import argparse
import asyncio

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from trafficdesk.core.database import drop_models, engine, init_models  # noqa: E402
from trafficdesk.core.logging_config import setup_logging  # noqa: E402


async def main(reset: bool) -> None:
    if reset:
        await drop_models()
    await init_models()
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the trafficdesk database tables")
    parser.add_argument("--reset", action="store_true", help="drop every table first")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(main(args.reset))
    print("Database ready")
