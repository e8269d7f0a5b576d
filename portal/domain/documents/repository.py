"""Document repository - Database operations for client documents"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import ClientDocument


class DocumentRepository:
    """Repository for client document database operations"""

    @staticmethod
    def create_document(db: Session, **document_data) -> ClientDocument:
        document = ClientDocument(**document_data)
        db.add(document)
        db.commit()
        db.refresh(document)
        return document

    @staticmethod
    def get_document(db: Session, document_id: int) -> Optional[ClientDocument]:
        return db.query(ClientDocument).filter(ClientDocument.id == document_id).first()

    @staticmethod
    def list_for_user(db: Session, user_id: str) -> list[ClientDocument]:
        return (
            db.query(ClientDocument)
            .filter(ClientDocument.user_id == user_id)
            .order_by(ClientDocument.created_at.desc(), ClientDocument.id.desc())
            .all()
        )

    @staticmethod
    def list_all(db: Session) -> list[ClientDocument]:
        return (
            db.query(ClientDocument)
            .options(joinedload(ClientDocument.user))
            .order_by(ClientDocument.created_at.desc(), ClientDocument.id.desc())
            .all()
        )

    @staticmethod
    def update_document(db: Session, document: ClientDocument, **updates) -> ClientDocument:
        for key, value in updates.items():
            if value is not None and hasattr(document, key):
                setattr(document, key, value)
        db.commit()
        db.refresh(document)
        return document

    @staticmethod
    def delete_document(db: Session, document: ClientDocument) -> None:
        db.delete(document)
        db.commit()
