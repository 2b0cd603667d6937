"""Core library for the dpmon power supply monitor.

This package provides the error hierarchy and the value types shared by the
other dpmon packages. It has no external dependencies so it can serve as the
base layer for the protocol and driver packages.

Key components:
    - Errors: :class:`DpmonError` and the configuration/channel errors.
    - Types: :class:`InstrumentIdentity` describing a connected instrument.
"""

from dpmon_core.errors import ConfigError, DpmonError, InvalidChannelError
from dpmon_core.types import InstrumentIdentity

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Types
    "InstrumentIdentity",
    # Errors
    "ConfigError",
    "DpmonError",
    "InvalidChannelError",
]
