"""Global configuration for the Remind Me bot."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Discord
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")
COMMAND_PREFIX = os.getenv("COMMAND_PREFIX", "/")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = Path(os.getenv("LOG_DIR", Path(os.getenv("LOCALAPPDATA", ".")) / "remindme-bot" / "logs"))
LOG_DIR.mkdir(parents=True, exist_ok=True)
