"""
Plugin system for bookshelf.

Long-lived resources (database engine, Sentry client, auth service) implement
``BasePlugin`` and are driven by ``PluginManager`` during the application
lifespan:
- setup: initialize resources from settings
- teardown: release resources
- check_health: report status for the /health endpoint
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, TypeVar

from .config import Settings
from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound="BasePlugin")


class BasePlugin(ABC):
    """Abstract base class for all plugins with built-in singleton support."""

    _instances: ClassVar[dict[type["BasePlugin"], "BasePlugin"]] = {}

    @classmethod
    def get_instance(cls: type[T]) -> T:
        """Get (or lazily create) the singleton instance of this plugin class."""
        if cls not in cls._instances:
            cls._instances[cls] = cls()
        return cls._instances[cls]  # type: ignore[return-value]

    @classmethod
    def clear_instances(cls) -> None:
        """Clear all singleton instances. Useful for testing."""
        cls._instances.clear()

    @abstractmethod
    async def setup(self, settings: Settings) -> bool:
        """Initialize the plugin. Returns True on success."""

    @abstractmethod
    async def teardown(self) -> bool:
        """Clean up the plugin. Returns True on success."""

    @abstractmethod
    async def check_health(self) -> dict[str, Any]:
        """Check plugin health status. Returns status information."""


class PluginManager(BasePlugin):
    """Manages plugin lifecycle and execution order."""

    def __init__(self) -> None:
        self._plugins: dict[str, BasePlugin] = {}
        self.is_ready: bool = False

    def register(self, name: str, plugin: BasePlugin) -> None:
        """Register a plugin with the manager."""
        self._plugins[name] = plugin
        logger.debug(f"Registered plugin: {name}")

    def get_registered_plugins(self) -> list[str]:
        return list(self._plugins.keys())

    async def setup(self, settings: Settings) -> bool:
        """Setup all plugins in registration order, continuing past failures."""
        all_success = True
        for name, plugin in self._plugins.items():
            try:
                if not await plugin.setup(settings):
                    logger.error(f"Plugin {name} setup returned False")
                    all_success = False
            except Exception as e:
                logger.error(f"Failed to set up plugin {name}: {e}")
                all_success = False
        self.is_ready = all_success
        return all_success

    async def teardown(self) -> bool:
        """Teardown all plugins in reverse order."""
        all_success = True
        for name, plugin in reversed(list(self._plugins.items())):
            try:
                if not await plugin.teardown():
                    logger.error(f"Plugin {name} teardown returned False")
                    all_success = False
            except Exception as e:
                logger.error(f"Failed to tear down plugin {name}: {e}")
                all_success = False
        self.is_ready = False
        return all_success

    async def check_health(self) -> dict[str, dict[str, Any]]:
        """Check health of all plugins."""
        if not self.is_ready:
            return {"status": {"error": "Plugin manager not ready"}}

        health_status: dict[str, dict[str, Any]] = {}
        for name, plugin in self._plugins.items():
            try:
                health_status[name] = await plugin.check_health()
            except Exception as e:
                logger.error(f"Health check failed for plugin {name}: {e}")
                health_status[name] = {"error": str(e)}
        return health_status
