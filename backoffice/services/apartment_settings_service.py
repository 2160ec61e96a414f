"""
Apartment Settings Service
Building-wide key/value settings. Utility rates fall back to the configured
defaults when their row is missing or does not parse as a number.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, resolve_clock
from backoffice.core.config import settings
from backoffice.core.exceptions import NotFoundError
from backoffice.database import transaction
from backoffice.models.apartment_setting import ApartmentSetting

logger = logging.getLogger(__name__)

ELECTRICITY_RATE_KEY = "electricity_rate"
WATER_RATE_KEY = "water_rate"


class ApartmentSettingsService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)

    def get_all_settings(self) -> List[ApartmentSetting]:
        return self.db.query(ApartmentSetting).order_by(ApartmentSetting.setting_key).all()

    def find_setting(self, key: str) -> Optional[ApartmentSetting]:
        return self.db.query(ApartmentSetting).filter(ApartmentSetting.setting_key == key).first()

    def get_setting(self, key: str) -> ApartmentSetting:
        setting = self.find_setting(key)
        if setting is None:
            raise NotFoundError(f"Setting not found: {key}", entity="Setting")
        return setting

    def get_decimal(self, key: str, default: Decimal) -> Decimal:
        setting = self.find_setting(key)
        if setting is None:
            return default
        try:
            return Decimal(setting.setting_value)
        except InvalidOperation:
            logger.warning(f"[SETTINGS] {key}={setting.setting_value!r} is not a number; using {default}")
            return default

    def electricity_rate(self) -> Decimal:
        return self.get_decimal(ELECTRICITY_RATE_KEY, settings.DEFAULT_ELECTRICITY_RATE)

    def water_rate(self) -> Decimal:
        return self.get_decimal(WATER_RATE_KEY, settings.DEFAULT_WATER_RATE)

    def update_setting(self, key: str, value: str, user_id: Optional[int] = None) -> ApartmentSetting:
        with transaction(self.db):
            setting = self.get_setting(key)
            setting.setting_value = value
            setting.updated_by_user_id = user_id
            setting.updated_at = self.clock.now()

        self.db.refresh(setting)
        logger.info(f"[SETTINGS] {key} set to {value!r}")
        return setting

    def upsert_setting(
        self,
        key: str,
        value: str,
        description: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> ApartmentSetting:
        with transaction(self.db):
            setting = self.find_setting(key)
            if setting is None:
                setting = ApartmentSetting(setting_key=key)
                self.db.add(setting)
            setting.setting_value = value
            if description is not None:
                setting.description = description
            setting.updated_by_user_id = user_id
            setting.updated_at = self.clock.now()

        self.db.refresh(setting)
        logger.info(f"[SETTINGS] {key} set to {value!r}")
        return setting
