"""Imperative templates and custom functions for the bundled colonies domain."""

from loreweave.templates.library.custom import register_custom
from loreweave.templates.library.faction_splinter import FactionSplinter
from loreweave.templates.library.family_expansion import FamilyExpansion
from loreweave.templates.library.hero_emergence import HeroEmergence
from loreweave.templates.library.location_discovery import LocationDiscovery
from loreweave.templates.library.succession import Succession

LIBRARY = (Succession, HeroEmergence, FamilyExpansion, FactionSplinter, LocationDiscovery)

__all__ = [
    "LIBRARY",
    "FactionSplinter",
    "FamilyExpansion",
    "HeroEmergence",
    "LocationDiscovery",
    "Succession",
    "register_custom",
]
