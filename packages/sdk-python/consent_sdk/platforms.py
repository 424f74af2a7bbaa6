"""Device capability bridges.

Native hosts (iOS, Android) subclass DeviceBridge to expose their device
details and push-permission prompt to the client.
"""

import platform as host_platform
import uuid
from abc import ABC, abstractmethod
from typing import Any, Optional


class DeviceBridge(ABC):
    """What the client needs to know about the device it runs on."""

    platform: str = "unknown"

    def __init__(self, device_id: Optional[str] = None):
        self._device_id = device_id or str(uuid.uuid4())

    @property
    def device_id(self) -> str:
        return self._device_id

    @abstractmethod
    def device_info(self) -> dict[str, Any]:
        """Device description sent with updates and syncs."""

    @abstractmethod
    def request_push_permission(self) -> bool:
        """Show the OS push-permission prompt; True if granted."""


class WebBridge(DeviceBridge):
    """Browser context. Push permission is never requested on the web."""

    platform = "web"

    def __init__(
        self,
        device_id: Optional[str] = None,
        user_agent: Optional[str] = None,
        language: Optional[str] = None,
    ):
        super().__init__(device_id)
        self.user_agent = user_agent
        self.language = language

    def device_info(self) -> dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "platform": self.platform,
            "userAgent": self.user_agent,
            "language": self.language,
        }

    def request_push_permission(self) -> bool:
        return False


class HeadlessBridge(DeviceBridge):
    """Servers, scripts and tests: static device details and a fixed push answer."""

    def __init__(
        self,
        platform: str = "server",
        device_id: Optional[str] = None,
        push_granted: bool = False,
        app_version: str = "0.0.0",
    ):
        super().__init__(device_id)
        self.platform = platform
        self.push_granted = push_granted
        self.app_version = app_version

    def device_info(self) -> dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "platform": self.platform,
            "osVersion": host_platform.release(),
            "appVersion": self.app_version,
            "deviceModel": host_platform.machine() or "unknown",
        }

    def request_push_permission(self) -> bool:
        return self.push_granted
