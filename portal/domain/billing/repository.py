"""Subscription repository - Database operations for billing handoffs"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Subscription


class SubscriptionRepository:
    """Repository for subscription database operations"""

    @staticmethod
    def get_by_provider_id(db: Session, provider_subscription_id: str) -> Optional[Subscription]:
        return (
            db.query(Subscription)
            .filter(Subscription.provider_subscription_id == provider_subscription_id)
            .first()
        )

    @staticmethod
    def get_latest_pending_for_email(db: Session, email: str) -> Optional[Subscription]:
        return (
            db.query(Subscription)
            .filter(Subscription.customer_email == email, Subscription.status == "pending")
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .first()
        )

    @staticmethod
    def create_subscription(db: Session, **subscription_data) -> Subscription:
        subscription = Subscription(**subscription_data)
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        return subscription

    @staticmethod
    def update_subscription(db: Session, subscription: Subscription, **updates) -> Subscription:
        for key, value in updates.items():
            if value is not None and hasattr(subscription, key):
                setattr(subscription, key, value)
        db.commit()
        db.refresh(subscription)
        return subscription
