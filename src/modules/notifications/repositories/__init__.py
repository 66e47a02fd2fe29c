from modules.notifications.repositories.django_repository import (
    DeviceTokenDjangoRepository,
)
from modules.notifications.repositories.interfaces import IDeviceTokenRepository

__all__ = ["IDeviceTokenRepository", "DeviceTokenDjangoRepository"]
