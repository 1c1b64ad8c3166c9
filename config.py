"""
ClassiCrawl Configuration
Loads settings from environment variables and defines constants.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base directory (where this script lives)
BASE_DIR = Path(__file__).parent.resolve()

# Craigslist site (subdomain) and search defaults
CRAIGSLIST_SITE = os.getenv("CRAIGSLIST_SITE", "newyork")
CRAIGSLIST_BASE_URL = os.getenv(
    "CRAIGSLIST_BASE_URL", f"https://{CRAIGSLIST_SITE}.craigslist.org"
)
SEARCH_CATEGORY = os.getenv("SEARCH_CATEGORY", "sss")
SEARCH_TERMS = [
    term.strip()
    for term in os.getenv("SEARCH_TERMS", "").split(",")
    if term.strip()
]

# Price range (empty = no filter)
MIN_PRICE = os.getenv("MIN_PRICE", "")
MAX_PRICE = os.getenv("MAX_PRICE", "")

# Timezone used to interpret posting timestamps when the area is unknown
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/New_York")

# Timing
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))
CHECK_INTERVAL_SECONDS = int(os.getenv("CHECK_INTERVAL_SECONDS", "300"))

# File paths
DATABASE_FILE = BASE_DIR / os.getenv("DATABASE_FILE", "classicrawl.db")
LOG_FILE = BASE_DIR / os.getenv("LOG_FILE", "classicrawl.log")

# Browser settings
HEADLESS = os.getenv("HEADLESS", "true").lower() == "true"
USE_BROWSER = os.getenv("USE_BROWSER", "false").lower() == "true"

# Search result pages always hold this many rows except the last one
PAGE_SIZE = 120
PAGE_OFFSET_PARAM = "s"

# Reference data endpoints
CATEGORIES_URL = "https://reference.craigslist.org/Categories"
LOCATIONS_URL = "https://reference.craigslist.org/Areas"

# User agent for requests
USER_AGENT = os.getenv(
    "USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36",
)
