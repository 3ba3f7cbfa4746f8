"""Contract schemas - Pydantic models for contract validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

CONTRACT_TYPES = ["service_agreement", "nda", "msa", "sow", "amendment", "other"]
CONTRACT_STATUSES = ["draft", "pending_signature", "signed", "expired", "cancelled"]
SIGNER_ROLES = ["client", "contractor", "witness", "approver"]


def _check_contract_type(v):
    if v is not None and v not in CONTRACT_TYPES:
        raise ValueError(f"Contract type must be one of: {', '.join(CONTRACT_TYPES)}")
    return v


class TemplateVariable(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    label: Optional[str] = None
    default: Optional[str] = ""


class ContractTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    contract_type: str = "service_agreement"
    content: str = Field(..., min_length=1)
    variables: list[TemplateVariable] = []

    @field_validator("contract_type")
    @classmethod
    def validate_contract_type(cls, v):
        return _check_contract_type(v)


class ContractTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    contract_type: Optional[str] = None
    content: Optional[str] = Field(None, min_length=1)
    variables: Optional[list[TemplateVariable]] = None
    is_active: Optional[bool] = None

    @field_validator("contract_type")
    @classmethod
    def validate_contract_type(cls, v):
        return _check_contract_type(v)


class ContractTemplateResponse(BaseModel):
    id: int
    name: str
    contract_type: str
    content: str
    variables: Optional[list[dict]] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TemplatePreviewRequest(BaseModel):
    metadata: dict[str, Any] = {}


class ContractCreate(BaseModel):
    organization_id: int
    title: str = Field(..., min_length=1, max_length=255)
    contract_type: str = "service_agreement"
    template_id: Optional[int] = None
    metadata: dict[str, Any] = {}
    content: Optional[str] = None
    value: Optional[int] = Field(None, ge=0)  # cents
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("contract_type")
    @classmethod
    def validate_contract_type(cls, v):
        return _check_contract_type(v)

    @model_validator(mode="after")
    def validate_source(self):
        if not self.template_id and not (self.content and self.content.strip()):
            raise ValueError("Either template_id or content is required")
        return self


class SignerInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    role: str = "client"
    signing_order: int = Field(1, ge=1, le=50)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        if v not in SIGNER_ROLES:
            raise ValueError(f"Signer role must be one of: {', '.join(SIGNER_ROLES)}")
        return v


class SendForSignatureRequest(BaseModel):
    signers: list[SignerInput] = Field(..., min_length=1, max_length=20)


class SignContractRequest(BaseModel):
    signature_name: str = Field(..., min_length=1, max_length=255)
    agree: bool = True

    @field_validator("agree")
    @classmethod
    def validate_agree(cls, v):
        if not v:
            raise ValueError("You must agree to the contract terms to sign")
        return v


class SignerResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    signing_order: int
    status: str
    signature_name: Optional[str] = None
    signed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContractResponse(BaseModel):
    id: int
    public_id: str
    organization_id: int
    template_id: Optional[int] = None
    title: str
    contract_type: str
    status: str
    content: str
    value: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    signers: list[SignerResponse] = []

    class Config:
        from_attributes = True
