"""Shared test fixtures and configuration."""

from dataclasses import dataclass
import os

import pytest


# Environment that pins every Settings value the tests depend on
TEST_ENV = {
    "RECORD_SEARCH_DEFAULT_PAGE_SIZE": "100",
    "RECORD_SEARCH_FLUSH_THRESHOLD": "10000",
    "RECORD_SEARCH_BM25_K1": "1.2",
    "RECORD_SEARCH_BM25_B": "0.75",
    "RECORD_SEARCH_LOG_LEVEL": "info",
    "RECORD_SEARCH_LOG_JSON": "false",
    "RECORD_SEARCH_TRACING_ENABLED": "false",
}

# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value

from record_search import FieldOptions, Payload, SchemaOptions, define_schema
from record_search.config import get_settings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset test settings before each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@dataclass
class StateInfo:
    name: str
    capital: str
    admitted: str
    population: int
    motto: str

    def __str__(self) -> str:
        return f"{self.name}({self.admitted}): {self.motto}"

    def to_json(self) -> str:
        return (
            f'{{"name": "{self.name}", "capital": "{self.capital}", "admitted": "{self.admitted}", '
            f'"population": {self.population}, "motto": "{self.motto}"}}'
        )


def admission_year(admitted: str) -> int:
    return int(admitted[:4])


STATE_SCHEMA = define_schema(
    StateInfo,
    SchemaOptions(language="english", full_text=True, payload=Payload.custom(StateInfo.to_json)),
    name=FieldOptions(index=True, prefix="XS"),
    admitted=FieldOptions(facet_fn=admission_year),
    population=FieldOptions(facet=True),
    motto=FieldOptions(index=True, prefix="XM", alias="slogan"),
)


@pytest.fixture
def state_schema():
    return STATE_SCHEMA


@pytest.fixture
def states():
    return [
        StateInfo("Alabama", "Montgomery", "1819-12-14", 4903185, "We dare defend our rights"),
        StateInfo("Alaska", "Juneau", "1959-01-03", 731545, "North to the future"),
        StateInfo("Arizona", "Phoenix", "1912-02-14", 7278717, "God enriches"),
        StateInfo("California", "Sacramento", "1850-09-09", 39512223, "Eureka"),
        StateInfo("New York", "Albany", "1788-07-26", 19453561, "Ever upward"),
        StateInfo("North Dakota", "Bismarck", "1889-11-02", 762062, "Liberty and union, now and forever"),
    ]


def pytest_collection_modifyitems(config, items):
    """Mark tests by the directory they live in (tests/unit, tests/integration)."""
    for item in items:
        parts = item.path.parts
        if "unit" in parts:
            item.add_marker(pytest.mark.unit)
        elif "integration" in parts:
            item.add_marker(pytest.mark.integration)
