#!/usr/bin/env python3
"""
Trivia Quiz Bot - Main Entry Point

Starts the Discord trivia bot. Each player gets a private quiz panel with
questions drawn from the catalog named in config.json.

Usage:
    python main.py [path/to/config.json]

Environment Variables:
    DISCORD_BOT_TOKEN: Discord bot token, used instead of bot.token in the config
"""

import asyncio
import sys
import os
import json
import logging
from pathlib import Path

from trivia_quiz.config_manager import ConfigManager

DEFAULT_CONFIG_PATH = "config.json"
TOKEN_PLACEHOLDER = "YOUR_DISCORD_BOT_TOKEN_HERE"


def read_config_file(config_path):
    """Parse the JSON config file, exiting with a message if it is unusable."""
    path = Path(config_path)
    if not path.is_file():
        print(f"❌ Config file {path} not found.")
        print("Create it from the sample config.json shipped with the bot.")
        sys.exit(1)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        print(f"❌ {path} is not valid JSON (line {e.lineno}): {e.msg}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Could not read {path}: {e}")
        sys.exit(1)

    if not isinstance(config, dict):
        print(f"❌ {path} must contain a JSON object")
        sys.exit(1)
    return config


def resolve_token(config):
    """Environment token first, then the config file."""
    token = os.getenv('DISCORD_BOT_TOKEN') or config.get('bot', {}).get('token')
    if token and token != TOKEN_PLACEHOLDER:
        return token

    print("❌ No Discord bot token configured.")
    print("Set DISCORD_BOT_TOKEN or fill in bot.token in the config file.")
    sys.exit(1)


def configure_logging(config):
    """Console plus file logging, level and directory from the 'logging' section."""
    log_config = config.get('logging', {})
    level_name = str(log_config.get('level', 'INFO')).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    log_directory = Path(log_config.get('log_directory', './logs/'))
    log_directory.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8')
        ]
    )

    # discord.py is chatty at INFO
    for name in ('discord', 'discord.http', 'discord.gateway'):
        logging.getLogger(name).setLevel(logging.WARNING)


def report_quiz_settings(config):
    """Print the effective quiz settings and any rejected values before connecting."""
    config_manager = ConfigManager()
    for error in config_manager.apply_config(config):
        print(f"⚠️  Ignoring setting: {error}")
    print(f"📋 {config_manager.get_settings_summary()}")

    if not Path(config_manager.get_catalog_path()).exists():
        print(f"⚠️  Question catalog {config_manager.get_catalog_path()} is missing; "
              f"quizzes stay unavailable until /reload finds it")


async def start(config):
    from trivia_quiz.bot import run_bot
    await run_bot(resolve_token(config), config)


def main(argv):
    config = read_config_file(argv[1] if len(argv) > 1 else DEFAULT_CONFIG_PATH)
    configure_logging(config)
    report_quiz_settings(config)

    print("🤖 Starting Trivia Quiz Bot...")
    try:
        asyncio.run(start(config))
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")


if __name__ == "__main__":
    main(sys.argv)
