"""Contract router - FastAPI endpoints for contracts and e-signature"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import (
    ContractCreate,
    ContractResponse,
    ContractTemplateCreate,
    ContractTemplateResponse,
    ContractTemplateUpdate,
    SendForSignatureRequest,
    SignContractRequest,
    TemplatePreviewRequest,
)
from .service import ContractService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contracts", tags=["Contracts"])

rate_limit_sign = create_rate_limiter(limit=10, window_seconds=60, key_prefix="contract_sign")


def get_contract_service(db: Session = Depends(get_db)) -> ContractService:
    """Dependency injection for ContractService"""
    return ContractService(db)


def get_client_ip(request: Request) -> str:
    client_ip = request.headers.get("X-Forwarded-For", request.client.host if request.client else "unknown")
    if client_ip and "," in client_ip:
        client_ip = client_ip.split(",")[0].strip()
    return client_ip


# ============================================================================
# TEMPLATES
# ============================================================================


@router.get("/templates", response_model=list[ContractTemplateResponse])
async def list_templates(
    include_inactive: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    return service.list_templates(current_user, include_inactive)


@router.post("/templates", response_model=ContractTemplateResponse, status_code=201)
async def create_template(
    data: ContractTemplateCreate,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    return service.create_template(current_user, data)


@router.patch("/templates/{template_id}", response_model=ContractTemplateResponse)
async def update_template(
    template_id: int,
    data: ContractTemplateUpdate,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    return service.update_template(template_id, current_user, data)


@router.post("/templates/{template_id}/preview")
async def preview_template(
    template_id: int,
    data: TemplatePreviewRequest,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    """Render a template with the given metadata without saving anything"""
    return service.preview_template(template_id, current_user, data.metadata)


# ============================================================================
# PUBLIC SIGNING (no authentication, token in URL)
# ============================================================================


@router.get("/sign/{token}")
async def get_signing_request(
    token: str,
    service: ContractService = Depends(get_contract_service),
):
    contract, signer = service.resolve_signing_token(token)
    return {
        "contract_title": contract.title,
        "contract_status": contract.status,
        "content": contract.content,
        "signer_name": signer.name,
        "signer_status": signer.status,
        "signing_order": signer.signing_order,
    }


@router.post("/sign/{token}", response_model=ContractResponse)
async def sign_contract(
    token: str,
    data: SignContractRequest,
    request: Request,
    service: ContractService = Depends(get_contract_service),
    _: None = Depends(rate_limit_sign),
):
    return await service.sign_contract(token, data, get_client_ip(request))


# ============================================================================
# CONTRACTS
# ============================================================================


@router.get("", response_model=list[ContractResponse])
async def list_contracts(
    status: Optional[str] = Query(None),
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    return service.list_contracts(current_user, status, organization_id)


@router.post("", response_model=ContractResponse, status_code=201)
async def create_contract(
    data: ContractCreate,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    return await service.create_contract(current_user, data)


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: int,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    return service.get_contract(contract_id, current_user)


@router.post("/{contract_id}/send", response_model=ContractResponse)
async def send_for_signature(
    contract_id: int,
    data: SendForSignatureRequest,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    return await service.send_for_signature(contract_id, current_user, data)


@router.post("/{contract_id}/cancel", response_model=ContractResponse)
async def cancel_contract(
    contract_id: int,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    return service.cancel_contract(contract_id, current_user)
