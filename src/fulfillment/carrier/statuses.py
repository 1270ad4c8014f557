"""Carrier status vocabulary.

The provider reports free-text statuses. Only the ones listed here move an
order; anything else leaves the order status untouched.
"""

STATUS_MAP = {
    "new": "processing",
    "pending": "processing",
    "confirmed": "confirmed",
    "pickup scheduled": "pickup_scheduled",
    "pickup scheduled today": "pickup_scheduled",
    "pickup generated": "pickup_scheduled",
    "manifest": "pickup_scheduled",
    "shipped": "shipped",
    "transit": "in_transit",
    "in transit": "in_transit",
    "out for delivery": "out_for_delivery",
    "customer not available": "out_for_delivery",
    "delivered": "delivered",
    "cancelled": "cancelled",
    "rto initiated": "rto_initiated",
    "rto delivered": "rto_delivered",
    "return initiated": "return_initiated",
    "return pending": "return_initiated",
    "return picked up": "return_in_transit",
    "return in transit": "return_in_transit",
    "return delivered": "returned",
}


def normalize_status(status):
    """Look up a provider status, ignoring case and surrounding whitespace."""
    if status is None:
        return None
    return STATUS_MAP.get(str(status).strip().lower())
