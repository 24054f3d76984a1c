# Domain errors raised by the affiliate services.
# Routers translate these into HTTP responses.


class AffiliateServiceError(Exception):
    """Base class for service-level errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MerchantNotFound(AffiliateServiceError):
    def __init__(self, domain: str):
        super().__init__(f"No merchant registered for domain '{domain}'")
        self.domain = domain


class AffiliateNotFound(AffiliateServiceError):
    def __init__(self, affiliate_id: str):
        super().__init__(f"Affiliate '{affiliate_id}' not found")
        self.affiliate_id = affiliate_id


class EmailAlreadyMerchant(AffiliateServiceError):
    def __init__(self, email: str):
        super().__init__("Email is already in use as a merchant.")
        self.email = email


class EmailAlreadyAffiliate(AffiliateServiceError):
    def __init__(self, email: str):
        super().__init__("Email is already in use as an affiliate.")
        self.email = email


class DomainAlreadyRegistered(AffiliateServiceError):
    def __init__(self, domain: str):
        super().__init__(f"Domain '{domain}' is already registered")
        self.domain = domain


class DiscountCodeError(AffiliateServiceError):
    """The external discount-code service failed or returned no code."""


class PayoutTaskFailure(AffiliateServiceError):
    """A single order payout failed; the order stays unpaid and is retried."""

    def __init__(self, order_id: str, reason: str):
        super().__init__(f"Payout for order {order_id} failed: {reason}")
        self.order_id = order_id
        self.reason = reason


class NotificationDeliveryFailure(AffiliateServiceError):
    """An outbound message could not be delivered."""

    def __init__(self, recipient: str, reason: str):
        super().__init__(f"Could not deliver message to {recipient}: {reason}")
        self.recipient = recipient
        self.reason = reason
