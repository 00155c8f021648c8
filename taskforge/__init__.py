"""taskforge library exports."""

from .config import load_configuration, save_configuration
from .errors import (
    ConfigurationError,
    ConnectorRegistrationError,
    InvocationError,
    TaskforgeError,
    TemplateMissingError,
    UnknownConnectorError,
)
from .generator import ForgeGenerator
from .models import GenerationReport, ProjectConfiguration, ReconciliationReport
from .workflow import ForgeManager

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ConnectorRegistrationError",
    "ForgeGenerator",
    "ForgeManager",
    "GenerationReport",
    "InvocationError",
    "ProjectConfiguration",
    "ReconciliationReport",
    "TaskforgeError",
    "TemplateMissingError",
    "UnknownConnectorError",
    "load_configuration",
    "save_configuration",
]
