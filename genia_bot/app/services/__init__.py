from .classifier_service import CloneCategory, CloneClassifier, classify
from .quota_service import QuotaEnforcer, QuotaStatus, PLAN_LIMITS
from .inbound_service import InboundMessageService, InboundMessage, InboundResult
from .whatsapp_service import WhatsAppService
from .cache_service import CacheService

__all__ = [
    "CloneCategory", "CloneClassifier", "classify",
    "QuotaEnforcer", "QuotaStatus", "PLAN_LIMITS",
    "InboundMessageService", "InboundMessage", "InboundResult",
    "WhatsAppService",
    "CacheService",
]
