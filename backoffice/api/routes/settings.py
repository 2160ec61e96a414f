"""
Apartment Settings Routes
Building-wide key/value settings and the utility rates read from them
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, get_clock
from backoffice.database import get_db
from backoffice.dependencies import require_admin
from backoffice.models.user import User
from backoffice.schemas.setting import SettingResponse, SettingUpsert, SettingValue, UtilityRates
from backoffice.services.apartment_settings_service import ApartmentSettingsService

router = APIRouter()


def get_settings_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> ApartmentSettingsService:
    return ApartmentSettingsService(db, clock)


@router.get("/utility-rates", response_model=UtilityRates)
def utility_rates(service: ApartmentSettingsService = Depends(get_settings_service)):
    return UtilityRates(electricity_rate=service.electricity_rate(), water_rate=service.water_rate())


@router.get("/", response_model=List[SettingResponse])
def list_settings(
    service: ApartmentSettingsService = Depends(get_settings_service),
    _: User = Depends(require_admin),
):
    return service.get_all_settings()


@router.get("/{key}", response_model=SettingResponse)
def get_setting(
    key: str,
    service: ApartmentSettingsService = Depends(get_settings_service),
    _: User = Depends(require_admin),
):
    return service.get_setting(key)


@router.put("/", response_model=SettingResponse)
def upsert_setting(
    body: SettingUpsert,
    service: ApartmentSettingsService = Depends(get_settings_service),
    current_user: User = Depends(require_admin),
):
    return service.upsert_setting(
        body.setting_key, body.setting_value, body.description, user_id=current_user.id
    )


@router.put("/{key}", response_model=SettingResponse)
def update_setting(
    key: str,
    body: SettingValue,
    service: ApartmentSettingsService = Depends(get_settings_service),
    current_user: User = Depends(require_admin),
):
    return service.update_setting(key, body.setting_value, user_id=current_user.id)
