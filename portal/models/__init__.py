"""Portal models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, TimestampMixin, OwnerMixin
from .user import UserProfile, AdminSecuritySetting, ApiCredential
from .contact import Contact, ContactGroup, ContactGroupMember
from .campaign import Campaign, MessageHistory
from .billing import UserCredits, CreditTransaction
from .service import ServiceCatalog, ServiceSubscription, ServiceActivationRequest
from .data_hub import DataModel, DataRecord, ImportJob
from .analytics import AnalyticsEvent
from .notification import Notification
from .admin import AdminSession, AdminApiKey, AuditLog
from .segment import UserSegment, UserSegmentMember

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "OwnerMixin",
    "UserProfile",
    "AdminSecuritySetting",
    "ApiCredential",
    "Contact",
    "ContactGroup",
    "ContactGroupMember",
    "Campaign",
    "MessageHistory",
    "UserCredits",
    "CreditTransaction",
    "ServiceCatalog",
    "ServiceSubscription",
    "ServiceActivationRequest",
    "DataModel",
    "DataRecord",
    "ImportJob",
    "AnalyticsEvent",
    "Notification",
    "AdminSession",
    "AdminApiKey",
    "AuditLog",
    "UserSegment",
    "UserSegmentMember",
]
