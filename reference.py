"""
ClassiCrawl Reference Data
Craigslist categories and areas, and the search URL builder that uses them.

Reference: https://www.craigslist.org/about/reference
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Optional, Tuple
from urllib.parse import urlencode

import requests

from config import (
    CATEGORIES_URL,
    CRAIGSLIST_SITE,
    DEFAULT_TIMEZONE,
    LOCATIONS_URL,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from errors import FetchError, QueryError

logger = logging.getLogger(__name__)

# Condition name -> code used by the "condition" search parameter
CONDITIONS = MappingProxyType({
    "new": 10,
    "like new": 20,
    "excellent": 30,
    "good": 40,
    "fair": 50,
    "salvage": 60,
})

# Language name -> code used by the "language" search parameter
LANGUAGES = MappingProxyType({
    "afrikaans": 1,
    "catalan": 2,
    "danish": 3,
    "dutch": 4,
    "english": 5,
    "finnish": 6,
    "french": 7,
    "german": 8,
    "italian": 9,
    "norwegian": 10,
    "portuguese": 11,
    "spanish": 12,
    "swedish": 13,
    "filipino": 14,
    "turkish": 15,
    "chinese": 16,
    "arabic": 17,
    "japanese": 18,
    "korean": 19,
    "russian": 20,
    "vietnamese": 21,
})

SORT_ORDERS = frozenset({"date", "priceasc", "pricedsc", "rel"})


@dataclass(frozen=True)
class Category:
    """A searchable Craigslist category."""
    abbreviation: str
    category_id: int
    description: str
    type: str


@dataclass(frozen=True)
class SubArea:
    """A searchable area within a location."""
    abbreviation: str
    description: str
    short_description: str
    sub_area_id: int


@dataclass(frozen=True)
class Location:
    """A Craigslist site (area)."""
    abbreviation: str
    area_id: int
    country: str
    description: str
    hostname: str
    latitude: float
    longitude: float
    region: str
    short_description: str
    timezone: str
    sub_areas: Tuple[SubArea, ...] = ()


def load_categories(data) -> Dict[str, Category]:
    """Build the category map (keyed by abbreviation) from decoded JSON."""
    categories = {}
    for item in data:
        category = Category(
            abbreviation=item["Abbreviation"],
            category_id=int(item.get("CategoryID", 0)),
            description=item.get("Description", ""),
            type=item.get("Type", ""),
        )
        categories[category.abbreviation] = category
    return categories


def load_locations(data) -> Dict[str, Location]:
    """Build the location map (keyed by abbreviation) from decoded JSON."""
    locations = {}
    for item in data:
        sub_areas = tuple(
            SubArea(
                abbreviation=sub["Abbreviation"],
                description=sub.get("Description", ""),
                short_description=sub.get("ShortDescription", ""),
                sub_area_id=int(sub.get("SubAreaID", 0)),
            )
            for sub in item.get("SubAreas") or []
        )
        location = Location(
            abbreviation=item["Abbreviation"],
            area_id=int(item.get("AreaID", 0)),
            country=item.get("Country", ""),
            description=item.get("Description", ""),
            hostname=item.get("Hostname", ""),
            latitude=float(item.get("Latitude", 0.0)),
            longitude=float(item.get("Longitude", 0.0)),
            region=item.get("Region", ""),
            short_description=item.get("ShortDescription", ""),
            timezone=item.get("Timezone", ""),
            sub_areas=sub_areas,
        )
        locations[location.abbreviation] = location
    return locations


def _get_json(url: str, session: Optional[requests.Session] = None):
    """GET a reference endpoint and decode its JSON body."""
    http = session or requests
    try:
        response = http.get(url, headers={"User-Agent": USER_AGENT}, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise FetchError(f"error sending request: {e}", url) from e

    if not response.ok:
        raise FetchError(
            f"reference list failed: {response.status_code} {response.reason}",
            url,
            response.status_code,
        )

    try:
        return response.json()
    except ValueError as e:
        raise FetchError(f"unable to decode reference data: {e}", url) from e


def fetch_categories(session: Optional[requests.Session] = None) -> Dict[str, Category]:
    """Download all categories available for search."""
    categories = load_categories(_get_json(CATEGORIES_URL, session))
    logger.info(f"Loaded {len(categories)} categories")
    return categories


def fetch_locations(session: Optional[requests.Session] = None) -> Dict[str, Location]:
    """Download all locations (areas) available for search."""
    locations = load_locations(_get_json(LOCATIONS_URL, session))
    logger.info(f"Loaded {len(locations)} locations")
    return locations


def find_location(name: str, locations: Dict[str, Location]) -> Optional[Location]:
    """Look a location up by abbreviation ("nyc") or site hostname ("newyork")."""
    if name in locations:
        return locations[name]
    for location in locations.values():
        if location.hostname == name:
            return location
    return None


def resolve_timezone(location: str, locations: Optional[Dict[str, Location]] = None) -> str:
    """Timezone name for a location, falling back to DEFAULT_TIMEZONE."""
    found = find_location(location, locations) if locations else None
    if found is not None and found.timezone:
        return found.timezone
    return DEFAULT_TIMEZONE


@dataclass(frozen=True)
class Filters:
    """Optional search filters."""
    titles_only: bool = False
    has_pic: bool = False
    posted_today: bool = False
    bundle_duplicates: bool = False
    search_nearby: bool = False
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    conditions: Tuple[str, ...] = ()
    languages: Tuple[str, ...] = ()
    sort: str = "date"

    def to_params(self):
        """Encode the filters as (name, value) query parameters."""
        if self.sort not in SORT_ORDERS:
            raise QueryError(f"invalid sort order: {self.sort}")

        params = [("sort", self.sort)]
        if self.titles_only:
            params.append(("srchType", "T"))
        for name, enabled in (
            ("hasPic", self.has_pic),
            ("postedToday", self.posted_today),
            ("bundleDuplicates", self.bundle_duplicates),
            ("searchNearby", self.search_nearby),
        ):
            if enabled:
                params.append((name, 1))
        if self.min_price is not None:
            params.append(("min_price", self.min_price))
        if self.max_price is not None:
            params.append(("max_price", self.max_price))
        for condition in self.conditions:
            if condition not in CONDITIONS:
                raise QueryError(f"invalid condition: {condition}")
            params.append(("condition", CONDITIONS[condition]))
        for language in self.languages:
            if language not in LANGUAGES:
                raise QueryError(f"invalid language: {language}")
            params.append(("language", LANGUAGES[language]))
        return params


@dataclass(frozen=True)
class Query:
    """A validated search: where, in which category, for what."""
    location: str
    category: str
    term: str = ""
    hostname: str = ""
    filters: Filters = field(default_factory=Filters)


def build_query(location: str, category: str, term: str = "",
                filters: Optional[Filters] = None,
                locations: Optional[Dict[str, Location]] = None,
                categories: Optional[Dict[str, Category]] = None) -> Query:
    """
    Build a search query, validating it against reference data when given.

    Args:
        location: Location abbreviation or site hostname (e.g. 'nyc' or 'newyork')
        category: Category abbreviation (e.g. 'sss')
        term: Free-text search term
        filters: Optional search filters
        locations: Location map from fetch_locations (skips validation if None)
        categories: Category map from fetch_categories (skips validation if None)

    Raises:
        QueryError: unknown location, category or filter value
    """
    hostname = location
    if locations is not None:
        found = find_location(location, locations)
        if found is None:
            raise QueryError(f"invalid location provided: {location}")
        hostname = found.hostname or location

    if categories is not None and category not in categories:
        raise QueryError(f"invalid category provided: {category}")

    filters = filters or Filters()
    # encode early so bad filter values fail here rather than at fetch time
    filters.to_params()

    return Query(
        location=location,
        category=category,
        term=term.strip(),
        hostname=hostname,
        filters=filters,
    )


def build_search_url(query: Query, base_url: Optional[str] = None) -> str:
    """
    Build the first-page search URL for a query.

    The pagination offset is appended later by the search cursor.
    """
    if base_url is None:
        base_url = f"https://{query.hostname or CRAIGSLIST_SITE}.craigslist.org"
    params = []
    if query.term:
        params.append(("query", query.term))
    params.extend(query.filters.to_params())
    return f"{base_url.rstrip('/')}/search/{query.category}?{urlencode(params)}"
