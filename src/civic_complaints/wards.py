"""Ward and sub-zone reference data."""

import logging
from typing import Optional

from .api.base import PortalApi
from .models import SubZone, Ward

logger = logging.getLogger(__name__)


class WardDirectory:
    """Ward list fetched once per form mount and cached for the session."""

    def __init__(self, api: PortalApi):
        self.api = api
        self._wards: Optional[dict[str, Ward]] = None

    @property
    def loaded(self) -> bool:
        return self._wards is not None

    @property
    def by_id(self) -> Optional[dict[str, Ward]]:
        return self._wards

    @property
    def wards(self) -> list[Ward]:
        return list((self._wards or {}).values())

    async def load(self) -> list[Ward]:
        if self._wards is None:
            await self.reload()
        return self.wards

    async def reload(self) -> list[Ward]:
        wards = await self.api.get_wards()
        self._wards = {ward.id: ward for ward in wards}
        logger.info("Loaded %d ward(s)", len(self._wards))
        return self.wards

    def get(self, ward_id: str) -> Optional[Ward]:
        return (self._wards or {}).get(ward_id)

    def sub_zones(self, ward_id: str) -> list[SubZone]:
        ward = self.get(ward_id)
        return list(ward.sub_zones) if ward else []

    def requires_sub_zone(self, ward_id: str) -> bool:
        return bool(self.sub_zones(ward_id))
