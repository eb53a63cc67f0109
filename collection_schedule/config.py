"""
This module contains configuration settings for the application.
"""
import os
import logging

# Collection form (AchieveForms page embedding the bin-day lookup)
SOURCE_URL = os.environ.get(
    "SOURCE_URL",
    "https://my.gravesham.gov.uk/en/AchieveForms/?form_uri=sandbox-publish://AF-Process-22218d5c-c6d6-492f-b627-c713771126be/AF-Stage-905e87c1-144b-4a72-8932-5518ddd3e618/definition.json&redirectlink=%2Fen&cancelRedirectLink=%2Fen&consentMessage=yes",
)

# Notification state database
STATE_DB_PATH = os.environ.get("STATE_DB_PATH", "bin_days_state.db")

# Address list and recipients
ADDRESS_CONFIG_PATH = os.environ.get("ADDRESS_CONFIG_PATH", os.path.join("config", "recipients.json"))

# Local time zone used for every calendar-date decision
DEFAULT_TIMEZONE = "Europe/London"
TIMEZONE = os.environ.get("TZ", DEFAULT_TIMEZONE)

# Appended to every message body
MESSAGE_SUFFIX = os.environ.get("MESSAGE_SUFFIX", "")

# Force mode override ("1", "true" or "yes")
FORCE_NOTIFY = os.environ.get("FORCE_NOTIFY", "")

# Browser
HEADLESS = os.environ.get("HEADLESS", "true").lower() not in ("0", "false", "no")
USER_AGENT = os.environ.get(
    "USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/127.0.0.0 Safari/537.36",
)

# Navigation timeouts, in seconds
PAGE_LOAD_TIMEOUT_SECONDS = float(os.environ.get("PAGE_LOAD_TIMEOUT_SECONDS", 90))
FRAME_TIMEOUT_SECONDS = float(os.environ.get("FRAME_TIMEOUT_SECONDS", 60))
SUGGESTION_TIMEOUT_SECONDS = float(os.environ.get("SUGGESTION_TIMEOUT_SECONDS", 60))
RESULTS_TIMEOUT_SECONDS = float(os.environ.get("RESULTS_TIMEOUT_SECONDS", 120))

# Overall budget for one run
RUN_TIMEOUT_SECONDS = float(os.environ.get("RUN_TIMEOUT_SECONDS", 840))

# Frame HTML and screenshots are written here on navigation failures when set
DEBUG_ARTIFACT_DIR = os.environ.get("DEBUG_ARTIFACT_DIR")

# Credentials
SECRETS_DIR = os.environ.get("SECRETS_DIR", "secrets")

# Joke of the day
JOKE_ENABLED = os.environ.get("JOKE_ENABLED", "true").lower() not in ("0", "false", "no")
JOKE_API_URL = os.environ.get("JOKE_API_URL", "https://icanhazdadjoke.com/")
JOKE_TIMEOUT_SECONDS = float(os.environ.get("JOKE_TIMEOUT_SECONDS", 5))

# Logging level
LOG_LEVEL = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
