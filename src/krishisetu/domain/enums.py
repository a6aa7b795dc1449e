"""Domain enumerations for the KrishiSetu marketplace.

All enums use the (str, Enum) pattern so values serialize straight into
documents and JSON responses.
"""

from enum import Enum


class UserRole(str, Enum):
    """The two mutually exclusive marketplace roles."""

    FARMER = "farmer"
    BUYER = "buyer"


class ListingStatus(str, Enum):
    """Whether a produce listing can still receive offers."""

    OPEN = "open"
    SOLD = "sold"


class OfferStatus(str, Enum):
    """Negotiation state of a buyer's offer."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTERED = "countered"


class OfferActor(str, Enum):
    """Who is responding to an offer."""

    FARMER = "farmer"
    BUYER = "buyer"


class TransactionStatus(str, Enum):
    """Settlement state of a transaction created from an accepted offer."""

    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Collection(str, Enum):
    """Document collection names."""

    USERS = "users"
    LISTINGS = "listings"
    OFFERS = "offers"
    TRANSACTIONS = "transactions"
