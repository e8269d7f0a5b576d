"""Contract repository - Database operations for contracts"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Contract


class ContractRepository:
    """Repository for contract database operations"""

    @staticmethod
    def get_contract(db: Session, contract_id: str) -> Optional[Contract]:
        return db.query(Contract).filter(Contract.id == contract_id).first()

    @staticmethod
    def get_by_request_id(db: Session, request_id: str) -> Optional[Contract]:
        return db.query(Contract).filter(Contract.zoho_request_id == request_id).first()

    @staticmethod
    def list_for_client(db: Session, user_id: str, statuses: tuple[str, ...]) -> list[Contract]:
        return (
            db.query(Contract)
            .filter(Contract.client_user_id == user_id, Contract.status.in_(statuses))
            .order_by(Contract.created_at.desc())
            .all()
        )

    @staticmethod
    def list_all(db: Session) -> list[Contract]:
        return (
            db.query(Contract)
            .options(joinedload(Contract.client))
            .order_by(Contract.created_at.desc())
            .all()
        )

    @staticmethod
    def create_contract(db: Session, **contract_data) -> Contract:
        contract = Contract(**contract_data)
        db.add(contract)
        db.commit()
        db.refresh(contract)
        return contract

    @staticmethod
    def save(db: Session, contract: Contract, **updates) -> Contract:
        """Apply non-None updates and commit pending changes (including status moves)"""
        for key, value in updates.items():
            if value is not None and hasattr(contract, key):
                setattr(contract, key, value)
        db.commit()
        db.refresh(contract)
        return contract

    @staticmethod
    def delete_contract(db: Session, contract: Contract) -> None:
        db.delete(contract)
        db.commit()
