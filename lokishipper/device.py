"""
Device information attached to every stream as labels.

The transport only needs two opaque strings. Embedding applications can
pass any object with ``device_model`` and ``os_version`` attributes.
"""

import platform
import socket
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@runtime_checkable
class DeviceInfoProvider(Protocol):
    """Supplies the device_model and os_version stream labels."""

    @property
    def device_model(self) -> str: ...

    @property
    def os_version(self) -> str: ...


def _current_device_model() -> str:
    return platform.machine() or socket.gethostname()


def _current_os_version() -> str:
    return f"{platform.system()} {platform.release()}".strip()


@dataclass(frozen=True)
class DeviceInfo:
    """Device info for the current host, captured once at construction."""

    device_model: str = field(default_factory=_current_device_model)
    os_version: str = field(default_factory=_current_os_version)
