"""Print the effective logging setup and which integrations are configured.

Secrets are never printed; integrations are reported as booleans.
"""

import json
import logging
import os
import sys

from dotenv import load_dotenv

from contact_center.app_logging import LogSettings
from contact_center.config import get_settings


def get_log_config():
    settings = LogSettings.from_env()
    return {
        "log_dir": os.path.abspath(settings.log_dir),
        "log_level": logging.getLevelName(settings.level),
        "log_json": settings.json,
        "log_request_bodies": settings.request_bodies,
        "retention_days": settings.retention_days,
        "rotate_utc": settings.rotate_utc,
    }


def get_integrations():
    settings = get_settings()
    return {
        "database": bool(settings.database_url),
        "api_token": bool(settings.api_token),
        "elevenlabs_sync": settings.elevenlabs.sync_configured,
        "elevenlabs_webhook": bool(settings.elevenlabs.webhook_token),
        "builderbot": bool(settings.builderbot.api_key and settings.builderbot.bot_id),
        "twilio": settings.twilio.configured,
        "sync_enabled": settings.sync.enabled,
        "pii_masking": settings.pii_masking_enabled,
    }


def main():
    load_dotenv()
    report = {"logging": get_log_config(), "integrations": get_integrations()}
    sys.stdout.write(json.dumps(report, indent=2) + "\n")


if __name__ == "__main__":
    main()
