"""Scenario catalogs: the built-in suite and YAML-declared ones."""

from .catalog import builtin_scenarios
from .loader import known_protocols, load_catalog, parse_catalog

__all__ = ["builtin_scenarios", "known_protocols", "load_catalog", "parse_catalog"]
