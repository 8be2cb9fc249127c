#!/usr/bin/env python3
"""
Sync the Atlas slash commands to the configured guild over the REST API.

Useful after bumping COMMAND_SET_VERSION when the bot should not be restarted,
or to inspect the payload with --dry-run.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Project root on the path when run as a plain script
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from bot.commands import sync_commands_rest
from bot.initializer import build_dispatcher
from config import load_config
from core.exceptions import GatewayError
from core.logger import setup_logger
from database.connection import SQLitePool
from services.audit_service import AuditLogger

logger = logging.getLogger("sync_commands")


async def run(dry_run: bool) -> int:
    config = load_config()
    # Nothing here touches the database or the gateway; the dispatcher is only
    # built to read its command table.
    pool = SQLitePool(config.database_path, pool_size=1)
    audit = AuditLogger(None, config.bot_log_channel_id)
    dispatcher, _ = build_dispatcher(config, None, pool, audit)
    payload = dispatcher.command_payload()

    if dry_run:
        print(json.dumps(payload, indent=2))
        return 0

    missing = [
        name
        for name, value in (
            ("DISCORD_BOT_TOKEN", config.bot_token),
            ("DISCORD_CLIENT_ID", config.application_id),
            ("DISCORD_PRESENCE_GUILD_ID", config.guild_id),
        )
        if not value
    ]
    if missing:
        logger.error(f"Missing configuration: {', '.join(missing)}")
        return 2

    try:
        registered = await sync_commands_rest(config.bot_token, config.application_id, config.guild_id, payload)
    except GatewayError as e:
        logger.error(str(e))
        return 1

    logger.info(f"Synced {len(registered)} commands to guild {config.guild_id}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync Atlas slash commands to the configured guild")
    parser.add_argument("--dry-run", action="store_true", help="print the payload instead of uploading it")
    args = parser.parse_args()

    setup_logger(name="sync_commands")
    return asyncio.run(run(args.dry_run))


if __name__ == "__main__":
    sys.exit(main())
