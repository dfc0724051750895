from ota_server.models.bundle import Bundle
from ota_server.models.device_event import DeviceEvent

__all__ = [
    "Bundle",
    "DeviceEvent",
]
