"""Database seeding: create tables and load personas from config/personas.yaml."""

import argparse
import asyncio
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import ValidationError

from spotlight.core.cache import get_cache
from spotlight.core.db import AsyncSessionLocal, create_all, drop_all
from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.core.logging import get_logger, setup_logging
from spotlight.personas.schemas import PersonaCreate
from spotlight.personas.service import create_persona

logger = get_logger(__name__)

DEFAULT_CONFIG = Path("config") / "personas.yaml"
SEED_OWNER = "system"


def load_personas(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        logger.warning(f"{path} not found, nothing to seed")
        return []
    with open(path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    return config.get("personas", [])


async def seed_personas(session, records: List[Dict[str, Any]]) -> int:
    created = 0
    for record in records:
        try:
            data = PersonaCreate.model_validate(record)
        except ValidationError as e:
            logger.error(f"Invalid persona record {record.get('username')}: {e}")
            continue
        try:
            await create_persona(session, SEED_OWNER, data)
            created += 1
        except SpotlightError as e:
            if e.code != ErrorCode.USERNAME_TAKEN:
                raise
            logger.info(f"Persona @{data.username} already exists, skipping")
    return created


async def _main(config: Path, reset: bool = False) -> None:
    if reset:
        logger.warning("Dropping all tables before seeding")
        await drop_all()
    await create_all()
    await get_cache().connect()
    async with AsyncSessionLocal() as session:
        created = await seed_personas(session, load_personas(config))
    logger.info(f"Seeded {created} personas")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the SpotlightX database")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG)
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    setup_logging("seed")
    asyncio.run(_main(args.config, args.reset))


if __name__ == "__main__":
    main()
