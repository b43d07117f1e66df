"""
Add-on Manager Services

Service layer composing the core building blocks into add-on lifecycle steps.
"""

from .addon_starter import AddonStarter  # noqa: F401
from .environment_resolver import EnvironmentResolver, parse_environment  # noqa: F401

__all__ = [
    "AddonStarter",
    "EnvironmentResolver",
    "parse_environment",
]
