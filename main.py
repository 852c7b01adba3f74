#!/usr/bin/env python3
"""
MathPro launcher.

Reads config.json (or the path given as the first argument), sets up logging
and starts the Discord bot. DISCORD_BOT_TOKEN, when set, wins over the token
in the file.

Usage:
    python main.py [path/to/config.json]
"""
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

DEFAULT_CONFIG_PATH = "config.json"
TOKEN_PLACEHOLDER = "YOUR_DISCORD_BOT_TOKEN_HERE"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE_NAME = "mathpro.log"


class LaunchError(Exception):
    """Raised when the bot cannot start with the given configuration."""
    pass


def read_config(path) -> dict:
    """
    Read the launcher configuration.

    Raises:
        LaunchError: If the file is missing, unreadable or not a JSON object
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise LaunchError(f"{config_path} not found. Copy config.json and fill in your bot token.")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise LaunchError(f"{config_path} is not valid JSON: {e}") from e
    except OSError as e:
        raise LaunchError(f"Could not read {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise LaunchError(f"{config_path} must contain a JSON object")
    return config


def resolve_token(config: dict, environ=None) -> str:
    environ = os.environ if environ is None else environ
    token = environ.get('DISCORD_BOT_TOKEN') or config.get('bot', {}).get('token')
    if not token or token == TOKEN_PLACEHOLDER:
        raise LaunchError("No Discord bot token. Set DISCORD_BOT_TOKEN or bot.token in config.json.")
    return token


def configure_logging(config: dict) -> Path:
    """Log to the console and to a file in the configured log directory."""
    logging_config = config.get('logging', {})
    level = logging.getLevelName(str(logging_config.get('level', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO

    log_directory = Path(logging_config.get('log_directory', './logs/'))
    log_directory.mkdir(parents=True, exist_ok=True)
    log_file = log_directory / LOG_FILE_NAME

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(), logging.FileHandler(log_file, encoding='utf-8')]
    )
    for name in ('discord', 'discord.http', 'discord.gateway'):
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_file


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    config_path = argv[0] if argv else DEFAULT_CONFIG_PATH

    try:
        config = read_config(config_path)
        token = resolve_token(config)
    except LaunchError as e:
        print(f"❌ {e}")
        return 1

    log_file = configure_logging(config)
    logging.getLogger(__name__).info(f"Starting MathPro, logging to {log_file}")

    from mathpro.bot import run_bot
    try:
        asyncio.run(run_bot(token, config))
    except KeyboardInterrupt:
        print("\n👋 MathPro stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
