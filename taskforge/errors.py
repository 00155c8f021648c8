"""Exception types raised by taskforge.

Structural problems (bad configuration, broken templates) surface as
exceptions. A task that needs an unconfigured role is not an error here:
the resolver reports it as a ``MissingCapability`` result instead.
"""

from __future__ import annotations

from typing import Optional


class TaskforgeError(Exception):
    """Base class for all taskforge errors."""


class ConfigurationError(TaskforgeError, ValueError):
    """Project configuration references an unknown role, integration or profile."""

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class UnknownConnectorError(TaskforgeError, KeyError):
    """A connector name has no descriptor in the connector table."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown MCP server: {self.name}"


class ConnectorRegistrationError(TaskforgeError, RuntimeError):
    """Registering one connector with the assistant CLI failed."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Failed to register connector '{name}': {reason}")
        self.name = name
        self.reason = reason


class TemplateMissingError(TaskforgeError, LookupError):
    """No capability template exists for a role/integration pair."""

    def __init__(self, role: str, integration: str):
        super().__init__(f"No template for role '{role}' with integration '{integration}'")
        self.role = role
        self.integration = integration


class InvocationError(TaskforgeError, ValueError):
    """An invocation placeholder could not be substituted."""
