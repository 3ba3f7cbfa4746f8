"""Contract repository - database access for contracts, templates and signers"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_contract import Contract, ContractSigner, ContractTemplate


class ContractRepository:
    @staticmethod
    def get_template(db: Session, template_id: int) -> Optional[ContractTemplate]:
        return db.query(ContractTemplate).filter(ContractTemplate.id == template_id).first()

    @staticmethod
    def list_templates(db: Session, include_inactive: bool = False) -> list[ContractTemplate]:
        query = db.query(ContractTemplate)
        if not include_inactive:
            query = query.filter(ContractTemplate.is_active.is_(True))
        return query.order_by(ContractTemplate.name).all()

    @staticmethod
    def get_by_id(db: Session, contract_id: int) -> Optional[Contract]:
        return db.query(Contract).filter(Contract.id == contract_id).first()

    @staticmethod
    def list_contracts(
        db: Session,
        org_ids: Optional[set[int]],
        status: Optional[str] = None,
        organization_id: Optional[int] = None,
    ) -> list[Contract]:
        query = db.query(Contract)
        if org_ids is not None:
            query = query.filter(Contract.organization_id.in_(org_ids))
        if status:
            query = query.filter(Contract.status == status)
        if organization_id:
            query = query.filter(Contract.organization_id == organization_id)
        return query.order_by(Contract.created_at.desc(), Contract.id.desc()).all()

    @staticmethod
    def get_signer(db: Session, signer_id: int) -> Optional[ContractSigner]:
        return db.query(ContractSigner).filter(ContractSigner.id == signer_id).first()
