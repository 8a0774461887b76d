from typing import Any, Dict, Optional

from .types import BusinessInfo


class BusinessProfile:
    """Static business/contact defaults used when an invoice carries no override."""

    FIELD_MAP = {
        'name': 'business_name',
        'contact': 'business_contact',
        'email': 'business_email',
        'website': 'business_website',
        'venmo_handle': 'venmo_handle',
        'paypal_email': 'paypal_email',
    }

    def __init__(self, defaults: Optional[Dict[str, Any]] = None):
        defaults = defaults or {}
        self.defaults = BusinessInfo(**{key: defaults.get(key) or '' for key in self.FIELD_MAP})

    def resolve(self, invoice) -> BusinessInfo:
        values = {}
        for key, column in self.FIELD_MAP.items():
            values[key] = getattr(invoice, column, '') or getattr(self.defaults, key)
        return BusinessInfo(**values)
