"""Contract service - templates, contracts and the e-signature flow"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...audit import log_action
from ...email_service import send_contract_completed_email, send_signature_request_email
from ...models import Organization, User
from ...models_contract import Contract, ContractSigner, ContractTemplate
from ...permissions import STAFF_ROLES, ensure_permission, is_privileged
from ...scoping import accessible_organization_ids, ensure_org_access
from ...security_utils import generate_timed_token, sanitize_html, verify_timed_token
from ..integrations.zapier.webhooks import emit_event
from .rendering import render_template
from .repository import ContractRepository
from .schemas import (
    ContractCreate,
    ContractTemplateCreate,
    ContractTemplateUpdate,
    SendForSignatureRequest,
    SignContractRequest,
)

logger = logging.getLogger(__name__)

SIGNING_TOKEN_SALT = "contract-signing"
SIGNING_TOKEN_MAX_AGE = 30 * 24 * 3600


def contract_event_data(contract: Contract) -> dict:
    return {
        "id": contract.id,
        "public_id": contract.public_id,
        "organization_id": contract.organization_id,
        "title": contract.title,
        "contract_type": contract.contract_type,
        "status": contract.status,
        "value": contract.value,
        "signed_at": contract.signed_at,
    }


def create_signing_token(contract: Contract, signer: ContractSigner) -> str:
    return generate_timed_token({"contract_id": contract.id, "signer_id": signer.id}, salt=SIGNING_TOKEN_SALT)


def first_unsigned_blocker(contract: Contract, signer: ContractSigner) -> Optional[ContractSigner]:
    """An unsigned signer with a lower signing order than this one, if any"""
    for other in contract.signers:
        if other.id != signer.id and other.status != "signed" and other.signing_order < signer.signing_order:
            return other
    return None


class ContractService:
    """Service layer for contract business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ContractRepository()

    def _ensure_staff(self, user: User) -> None:
        if user.role not in STAFF_ROLES:
            raise HTTPException(status_code=403, detail="Only staff can manage contracts")

    # ========================================================================
    # TEMPLATES
    # ========================================================================

    def list_templates(self, user: User, include_inactive: bool = False) -> list[ContractTemplate]:
        if not is_privileged(user):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return self.repo.list_templates(self.db, include_inactive)

    def get_template(self, template_id: int) -> ContractTemplate:
        template = self.repo.get_template(self.db, template_id)
        if not template:
            raise HTTPException(status_code=404, detail="Contract template not found")
        return template

    def create_template(self, user: User, data: ContractTemplateCreate) -> ContractTemplate:
        self._ensure_staff(user)
        template = ContractTemplate(
            name=data.name,
            contract_type=data.contract_type,
            content=data.content,
            variables=[var.model_dump() for var in data.variables],
            created_by=user.id,
        )
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        log_action(self.db, user, "contract_template.create", "contract_template", template.id)
        return template

    def update_template(self, template_id: int, user: User, data: ContractTemplateUpdate) -> ContractTemplate:
        self._ensure_staff(user)
        template = self.get_template(template_id)
        updates = data.model_dump(exclude_unset=True)
        for field, value in updates.items():
            setattr(template, field, value)
        self.db.commit()
        self.db.refresh(template)
        log_action(self.db, user, "contract_template.update", "contract_template", template.id)
        return template

    def preview_template(self, template_id: int, user: User, metadata: dict) -> dict:
        if not is_privileged(user):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        template = self.get_template(template_id)
        return {"html": render_template(template.content, template.variables, metadata)}

    # ========================================================================
    # CONTRACTS
    # ========================================================================

    def list_contracts(
        self, user: User, status: Optional[str] = None, organization_id: Optional[int] = None
    ) -> list[Contract]:
        ensure_permission(self.db, user, "contracts.view")
        org_ids = accessible_organization_ids(self.db, user)
        return self.repo.list_contracts(self.db, org_ids, status, organization_id)

    def get_contract(self, contract_id: int, user: User) -> Contract:
        contract = self.repo.get_by_id(self.db, contract_id)
        if not contract:
            raise HTTPException(status_code=404, detail="Contract not found")
        ensure_org_access(self.db, user, contract.organization_id)
        return contract

    async def create_contract(self, user: User, data: ContractCreate) -> Contract:
        self._ensure_staff(user)
        ensure_org_access(self.db, user, data.organization_id)
        if not self.db.query(Organization.id).filter(Organization.id == data.organization_id).first():
            raise HTTPException(status_code=404, detail="Organization not found")

        if data.template_id:
            template = self.get_template(data.template_id)
            if not template.is_active:
                raise HTTPException(status_code=400, detail="Contract template is not active")
            content = render_template(template.content, template.variables, data.metadata)
        else:
            content = sanitize_html(data.content)

        contract = Contract(
            organization_id=data.organization_id,
            template_id=data.template_id,
            title=data.title.strip(),
            contract_type=data.contract_type,
            status="draft",
            content=content,
            metadata_values=data.metadata or None,
            value=data.value,
            start_date=data.start_date,
            end_date=data.end_date,
            created_by=user.id,
        )
        self.db.add(contract)
        self.db.commit()
        self.db.refresh(contract)
        logger.info(f"📝 Contract {contract.id} created for organization {contract.organization_id}")

        log_action(
            self.db,
            user,
            "contract.create",
            "contract",
            contract.id,
            details={"title": contract.title, "template_id": contract.template_id},
            organization_id=contract.organization_id,
        )
        await emit_event(self.db, contract.organization_id, "contract.created", contract_event_data(contract))
        return contract

    async def send_for_signature(self, contract_id: int, user: User, data: SendForSignatureRequest) -> Contract:
        self._ensure_staff(user)
        contract = self.get_contract(contract_id, user)
        if contract.status != "draft":
            raise HTTPException(status_code=400, detail="Only draft contracts can be sent for signature")

        emails = [signer.email.lower() for signer in data.signers]
        if len(set(emails)) != len(emails):
            raise HTTPException(status_code=400, detail="Each signer must have a unique email")

        contract.signers = [
            ContractSigner(
                name=signer.name,
                email=signer.email,
                role=signer.role,
                signing_order=signer.signing_order,
                status="pending",
            )
            for signer in sorted(data.signers, key=lambda s: s.signing_order)
        ]
        contract.status = "pending_signature"
        contract.sent_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(contract)

        for signer in contract.signers:
            token = create_signing_token(contract, signer)
            try:
                await send_signature_request_email(
                    to=signer.email, signer_name=signer.name, contract_title=contract.title, token=token
                )
            except Exception as e:
                logger.error(f"❌ Failed to send signature request to {signer.email}: {e}")

        log_action(
            self.db,
            user,
            "contract.send",
            "contract",
            contract.id,
            details={"signers": len(contract.signers)},
            organization_id=contract.organization_id,
        )
        logger.info(f"📧 Contract {contract.id} sent to {len(contract.signers)} signers")
        return contract

    def cancel_contract(self, contract_id: int, user: User) -> Contract:
        self._ensure_staff(user)
        contract = self.get_contract(contract_id, user)
        if contract.status == "signed":
            raise HTTPException(status_code=400, detail="Signed contracts cannot be cancelled")
        if contract.status == "cancelled":
            raise HTTPException(status_code=400, detail="Contract is already cancelled")

        contract.status = "cancelled"
        contract.cancelled_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(contract)
        log_action(self.db, user, "contract.cancel", "contract", contract.id, organization_id=contract.organization_id)
        logger.info(f"🔄 Contract {contract.id} cancelled")
        return contract

    # ========================================================================
    # PUBLIC SIGNING
    # ========================================================================

    def resolve_signing_token(self, token: str) -> tuple[Contract, ContractSigner]:
        payload = verify_timed_token(token, max_age=SIGNING_TOKEN_MAX_AGE, salt=SIGNING_TOKEN_SALT)
        if not payload:
            raise HTTPException(status_code=400, detail="Invalid or expired signing link")

        signer = self.repo.get_signer(self.db, payload.get("signer_id"))
        if not signer or signer.contract_id != payload.get("contract_id"):
            raise HTTPException(status_code=404, detail="Signing request not found")
        return signer.contract, signer

    async def sign_contract(self, token: str, data: SignContractRequest, ip_address: Optional[str] = None) -> Contract:
        contract, signer = self.resolve_signing_token(token)
        if contract.status != "pending_signature":
            raise HTTPException(status_code=400, detail="This contract is not awaiting signatures")
        if signer.status == "signed":
            raise HTTPException(status_code=409, detail="You have already signed this contract")

        blocker = first_unsigned_blocker(contract, signer)
        if blocker:
            raise HTTPException(
                status_code=409,
                detail=f"Waiting for {blocker.name} to sign first",
            )

        now = datetime.utcnow()
        signer.status = "signed"
        signer.signature_name = data.signature_name.strip()
        signer.signed_at = now
        signer.ip_address = ip_address

        completed = all(s.status == "signed" for s in contract.signers)
        if completed:
            contract.status = "signed"
            contract.signed_at = now
        self.db.commit()
        self.db.refresh(contract)

        log_action(
            self.db,
            None,
            "contract.sign",
            "contract",
            contract.id,
            details={"signer_id": signer.id, "signer_email": signer.email},
            organization_id=contract.organization_id,
            ip_address=ip_address,
        )
        logger.info(f"✅ Signer {signer.id} signed contract {contract.id}")

        if completed:
            event_data = contract_event_data(contract)
            await emit_event(self.db, contract.organization_id, "contract.signed", event_data)
            await emit_event(self.db, contract.organization_id, "contract.completed", event_data)
            try:
                await send_contract_completed_email(
                    to=[s.email for s in contract.signers],
                    contract_title=contract.title,
                    contract_public_id=contract.public_id,
                )
            except Exception as e:
                logger.error(f"❌ Failed to send completion email for contract {contract.id}: {e}")

        return contract
