"""Built-in plugins and the registry they are loaded into."""

from .appdata import AppDataPlugin
from .base import Capability, Plugin, PluginError
from .desktop import DesktopPlugin
from .font import FontPlugin
from .registry import PluginRegistry


def default_registry() -> PluginRegistry:
    """Registry with every built-in plugin in dispatch order."""

    return PluginRegistry([DesktopPlugin(), FontPlugin(), AppDataPlugin()])


__all__ = [
    "AppDataPlugin",
    "Capability",
    "DesktopPlugin",
    "FontPlugin",
    "Plugin",
    "PluginError",
    "PluginRegistry",
    "default_registry",
]
