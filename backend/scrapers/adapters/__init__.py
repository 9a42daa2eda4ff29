"""
Source adapters.

Hackathons: devpost, unstop, cumulus
Design:     behance, dribbble, awwwards
"""
from typing import Dict, Type

from ..base import BaseScraper
from ..errors import ConfigurationError
from .awwwards import AwwwardsScraper
from .behance import BehanceScraper
from .cumulus import CumulusScraper
from .devpost import DevpostScraper
from .dribbble import DribbbleScraper
from .unstop import UnstopScraper

ADAPTER_CLASSES: Dict[str, Type[BaseScraper]] = {
    cls.SCRAPER_NAME: cls
    for cls in (
        DevpostScraper,
        UnstopScraper,
        CumulusScraper,
        BehanceScraper,
        DribbbleScraper,
        AwwwardsScraper,
    )
}


def get_adapter_class(source_name: str) -> Type[BaseScraper]:
    try:
        return ADAPTER_CLASSES[source_name]
    except KeyError:
        raise ConfigurationError(f"No adapter registered for {source_name}") from None


__all__ = [
    "ADAPTER_CLASSES",
    "get_adapter_class",
    "AwwwardsScraper",
    "BehanceScraper",
    "CumulusScraper",
    "DevpostScraper",
    "DribbbleScraper",
    "UnstopScraper",
]
