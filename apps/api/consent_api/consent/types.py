"""Consent type catalog."""

from dataclasses import dataclass
from enum import Enum

from consent_api.errors import ValidationError


class ConsentCategory(str, Enum):
    """Grouping used by preference screens and admin summaries."""

    COOKIES = "cookies"
    COMMUNICATIONS = "communications"
    LEGAL = "legal"
    DATA = "data"


class ConsentType(str, Enum):
    """What a consent event is about."""

    COOKIES_ESSENTIAL = "cookies_essential"
    COOKIES_ANALYTICS = "cookies_analytics"
    COOKIES_MARKETING = "cookies_marketing"
    TERMS_OF_SERVICE = "terms_of_service"
    PRIVACY_POLICY = "privacy_policy"
    NEWSLETTER = "newsletter"
    MARKETING_EMAILS = "marketing_emails"
    PUSH_NOTIFICATIONS = "push_notifications"
    DATA_PROCESSING = "data_processing"


class ConsentSource(str, Enum):
    """Where a consent event originated."""

    API = "api"
    SDK = "sdk"
    MANUAL = "manual"
    IMPORT = "import"


@dataclass(frozen=True)
class ConsentTypeInfo:
    """Static metadata for a consent type."""

    title: str
    description: str
    category: ConsentCategory
    is_required: bool = False
    requires_document: bool = False

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "required": self.is_required,
            "requiresDocument": self.requires_document,
        }


CONSENT_TYPES: dict[ConsentType, ConsentTypeInfo] = {
    ConsentType.COOKIES_ESSENTIAL: ConsentTypeInfo(
        title="Essential Cookies",
        description="Required for basic site functionality. Cannot be disabled.",
        category=ConsentCategory.COOKIES,
        is_required=True,
    ),
    ConsentType.COOKIES_ANALYTICS: ConsentTypeInfo(
        title="Analytics Cookies",
        description="Help us understand how visitors interact with our website.",
        category=ConsentCategory.COOKIES,
    ),
    ConsentType.COOKIES_MARKETING: ConsentTypeInfo(
        title="Marketing Cookies",
        description="Used to deliver personalized advertisements.",
        category=ConsentCategory.COOKIES,
    ),
    ConsentType.NEWSLETTER: ConsentTypeInfo(
        title="Newsletter Subscription",
        description="Receive our newsletter with updates and news.",
        category=ConsentCategory.COMMUNICATIONS,
        requires_document=True,
    ),
    ConsentType.MARKETING_EMAILS: ConsentTypeInfo(
        title="Marketing Communications",
        description="Receive promotional emails about our products and services.",
        category=ConsentCategory.COMMUNICATIONS,
        requires_document=True,
    ),
    ConsentType.PUSH_NOTIFICATIONS: ConsentTypeInfo(
        title="Push Notifications",
        description="Receive push notifications on your mobile devices.",
        category=ConsentCategory.COMMUNICATIONS,
    ),
    ConsentType.TERMS_OF_SERVICE: ConsentTypeInfo(
        title="Terms of Service",
        description="Agreement to our terms of service.",
        category=ConsentCategory.LEGAL,
        is_required=True,
        requires_document=True,
    ),
    ConsentType.PRIVACY_POLICY: ConsentTypeInfo(
        title="Privacy Policy",
        description="Acknowledgment of our privacy policy.",
        category=ConsentCategory.LEGAL,
        is_required=True,
        requires_document=True,
    ),
    ConsentType.DATA_PROCESSING: ConsentTypeInfo(
        title="Data Processing",
        description="Allow us to process your data for specified purposes.",
        category=ConsentCategory.DATA,
        requires_document=True,
    ),
}


def parse_consent_type(value) -> ConsentType:
    """Coerce a raw tag into a known ConsentType."""
    if isinstance(value, ConsentType):
        return value
    try:
        return ConsentType(value)
    except ValueError:
        raise ValidationError(
            f"Unknown consent type: {value!r}",
            details={"type": str(value)},
        ) from None


def type_info(consent_type) -> ConsentTypeInfo:
    """Get catalog metadata for a consent type."""
    return CONSENT_TYPES[parse_consent_type(consent_type)]
