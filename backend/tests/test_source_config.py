"""
Unit tests for the source configuration table.
"""

import dataclasses
from dataclasses import replace

import pytest

from scrapers.errors import ConfigurationError
from scrapers.models.records import RecordKind
from scrapers.source_config import (
    SOURCE_CONFIGS,
    get_source_config,
    sources_by_priority,
    validate_source_configs,
)


class TestSourceConfigs:
    """Tests for the bundled table"""

    def test_all_sources_present(self):
        assert set(SOURCE_CONFIGS) == {
            "devpost", "unstop", "cumulus", "behance", "dribbble", "awwwards",
        }

    def test_kinds(self):
        hackathons = {n for n, c in SOURCE_CONFIGS.items() if c.kind is RecordKind.HACKATHON}

        assert hackathons == {"devpost", "unstop", "cumulus"}

    def test_bundled_table_validates(self):
        assert validate_source_configs(SOURCE_CONFIGS) == list(SOURCE_CONFIGS)

    def test_entries_are_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            SOURCE_CONFIGS["dribbble"].priority = 1

    def test_priority_order(self):
        assert sources_by_priority() == [
            "devpost", "unstop", "cumulus", "behance", "dribbble", "awwwards",
        ]

    def test_priority_order_unknown_last(self):
        assert sources_by_priority(("zzz", "dribbble", "devpost")) == ["devpost", "dribbble", "zzz"]

    def test_get_unknown_source(self):
        with pytest.raises(ConfigurationError, match="Unknown source: nope"):
            get_source_config("nope")


class TestUrlFor:
    """Tests for SourceConfig.url_for()"""

    def test_search_url_preferred(self):
        url = get_source_config("dribbble").url_for(query="mobile app", category="mobile")

        assert url == "https://dribbble.com/search/shots?q=mobile+app&s=popular"

    def test_category_url(self):
        url = get_source_config("dribbble").url_for(category="mobile")

        assert url == "https://dribbble.com/shots/popular/mobile"

    def test_listing_url_default(self):
        assert get_source_config("cumulus").url_for(query="design") == "https://www.cumulus.iq/challenges"


class TestValidation:
    """Tests for validate_source_configs()"""

    def _broken(self, **changes):
        config = replace(SOURCE_CONFIGS["dribbble"], **changes)
        return {"dribbble": config}

    def test_empty_table(self):
        with pytest.raises(ConfigurationError, match="No sources configured"):
            validate_source_configs({})

    def test_key_mismatch(self):
        with pytest.raises(ConfigurationError, match="table key"):
            validate_source_configs({"other": SOURCE_CONFIGS["dribbble"]})

    def test_relative_listing_url(self):
        with pytest.raises(ConfigurationError, match="listing_url"):
            validate_source_configs(self._broken(listing_url="/shots"))

    def test_search_url_without_placeholder(self):
        with pytest.raises(ConfigurationError, match="search_url lacks"):
            validate_source_configs(self._broken(search_url="https://dribbble.com/search"))

    def test_retry_bounds(self):
        with pytest.raises(ConfigurationError, match="max_retries"):
            validate_source_configs(self._broken(max_retries=5))

    def test_unknown_resource_type(self):
        with pytest.raises(ConfigurationError, match="unknown resource types"):
            validate_source_configs(self._broken(block_resources=frozenset({"script"})))

    def test_error_names_source(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_source_configs(self._broken(max_limit=0))

        assert exc_info.value.source_name == "dribbble"
