"""Name generation helpers."""

from loreweave.naming.generator import (
    NameGenerator,
    Naming,
    SyllableNameGenerator,
    fallback_name,
)

__all__ = [
    "NameGenerator",
    "Naming",
    "SyllableNameGenerator",
    "fallback_name",
]
