"""
Tenant Routes
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.database import get_db
from backoffice.dependencies import require_admin
from backoffice.models.user import User
from backoffice.schemas.tenant import TenantCreate, TenantResponse, TenantUpdate
from backoffice.services.tenant_service import TenantService

router = APIRouter()


@router.get("/", response_model=List[TenantResponse])
def list_tenants(
    name: Optional[str] = Query(None, description="Search by first or last name"),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    service = TenantService(db)
    if name:
        return service.search_tenants(name)
    return service.get_all_tenants(skip=skip, limit=limit)


@router.get("/{tenant_id}", response_model=TenantResponse)
def get_tenant(tenant_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return TenantService(db).get_tenant(tenant_id)


@router.post("/", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
def create_tenant(tenant_in: TenantCreate, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return TenantService(db).create_tenant(tenant_in)


@router.put("/{tenant_id}", response_model=TenantResponse)
def update_tenant(
    tenant_id: int,
    tenant_in: TenantUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return TenantService(db).update_tenant(tenant_id, tenant_in)


@router.delete("/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tenant(tenant_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    """Delete a tenant; refused while they hold an active lease"""
    TenantService(db).delete_tenant(tenant_id)
