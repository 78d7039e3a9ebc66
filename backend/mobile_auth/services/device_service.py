"""Device header parsing and device registry binding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from mobile_auth.core.clock import utcnow
from mobile_auth.core.exceptions import MissingDeviceError
from mobile_auth.models.security import MobileDevice
from mobile_auth.services.stores import DeviceStore

logger = logging.getLogger(__name__)

DEVICE_ID_HEADER = "x-device-id"
DEVICE_PLATFORM_HEADER = "x-device-platform"
DEVICE_NAME_HEADER = "x-device-name"
APP_VERSION_HEADER = "x-app-version"

DEVICE_ID_MIN_LENGTH = 8
DEVICE_ID_MAX_LENGTH = 200
# Optional metadata is clipped, never rejected.
_METADATA_MAX_LENGTH = 128


@dataclass(frozen=True)
class DeviceHeaders:
    device_id: str
    platform: Optional[str] = None
    name: Optional[str] = None
    app_version: Optional[str] = None
    user_agent: Optional[str] = None


def _optional_header(headers: Any, name: str, limit: int = _METADATA_MAX_LENGTH) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        return None
    value = value.strip()
    return value[:limit] or None


def extract_device_headers(request: Any) -> DeviceHeaders:
    """
    Read the device identity a client declares on a request

    Args:
        request: Anything with a ``headers`` mapping (Starlette request, test double)

    Raises:
        MissingDeviceError: if ``x-device-id`` is absent or not 8..200 characters
    """
    headers = request.headers
    device_id = (headers.get(DEVICE_ID_HEADER) or "").strip()
    if not (DEVICE_ID_MIN_LENGTH <= len(device_id) <= DEVICE_ID_MAX_LENGTH):
        raise MissingDeviceError()

    return DeviceHeaders(
        device_id=device_id,
        platform=_optional_header(headers, DEVICE_PLATFORM_HEADER),
        name=_optional_header(headers, DEVICE_NAME_HEADER),
        app_version=_optional_header(headers, APP_VERSION_HEADER),
        user_agent=_optional_header(headers, "user-agent", limit=512),
    )


class DeviceService:
    """Registry of client installations per user."""

    def __init__(self, clock: Callable[[], Any] = utcnow):
        self._clock = clock

    def upsert_device(self, db: Session, user_id: str, device: DeviceHeaders) -> MobileDevice:
        """Create or refresh the device record; caller commits."""
        record = DeviceStore(db).upsert(
            user_id=user_id,
            device_id=device.device_id,
            platform=device.platform,
            name=device.name,
            app_version=device.app_version,
            seen_at=self._clock(),
        )
        logger.info("Mobile device upserted: user=%s device_record=%s", user_id, record.id)
        return record

    @staticmethod
    def get_device(db: Session, user_id: str, device_id: str) -> Optional[MobileDevice]:
        return DeviceStore(db).find(user_id, device_id)


device_service = DeviceService()
