"""Function inventory module.

This module handles:
- The ModuleFunction model and the build output layout
- Discovering functions from the <module>/<function>.<ext> convention
"""

from funcpack.functions.discovery import DiscoveryError, discover
from funcpack.functions.models import ModuleFunction

__all__ = ["DiscoveryError", "ModuleFunction", "discover"]
