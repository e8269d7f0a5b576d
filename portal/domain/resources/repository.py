"""Resource repository - Database operations for the resource library"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Resource


class ResourceRepository:
    """Repository for resource database operations"""

    @staticmethod
    def get_resource(db: Session, resource_id: int) -> Optional[Resource]:
        return db.query(Resource).filter(Resource.id == resource_id).first()

    @staticmethod
    def list_resources(db: Session, client_user_id: Optional[str] = None) -> list[Resource]:
        query = db.query(Resource)
        if client_user_id:
            query = query.filter(Resource.client_user_id == client_user_id)
        return query.order_by(Resource.created_at.desc(), Resource.id.desc()).all()

    @staticmethod
    def create_resource(db: Session, **resource_data) -> Resource:
        resource = Resource(**resource_data)
        db.add(resource)
        db.commit()
        db.refresh(resource)
        return resource

    @staticmethod
    def delete_resource(db: Session, resource: Resource) -> None:
        db.delete(resource)
        db.commit()
