# Merchant Platform API client
# Discount-code issuance and commission disbursement are delegated to the
# storefront platform; this client is the only place that talks to it.
import requests
from typing import Optional, Dict, Any
from decimal import Decimal
import logging

from config.app_config import MERCHANT_API_BASE_URL, MERCHANT_API_KEY, MERCHANT_API_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class MerchantApiError(Exception):
    """Raised when the merchant platform API call fails."""


class MerchantApiService:
    """Service for calling the external merchant platform"""

    def __init__(self, base_url: str = MERCHANT_API_BASE_URL, api_key: str = MERCHANT_API_KEY):
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json"
        }

    def _make_request(self, method: str, endpoint: str, data: Optional[Dict] = None,
                      headers: Optional[Dict] = None) -> Dict[str, Any]:
        """Make a request to the merchant platform API"""
        url = f"{self.base_url}{endpoint}"
        request_headers = {**self.headers, **(headers or {})}
        try:
            if method == "GET":
                response = requests.get(url, headers=request_headers, timeout=MERCHANT_API_TIMEOUT_SECONDS)
            elif method == "POST":
                response = requests.post(url, headers=request_headers, json=data, timeout=MERCHANT_API_TIMEOUT_SECONDS)
            else:
                raise ValueError(f"Unsupported method: {method}")

            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Merchant API error on {method} {endpoint}: {e}")
            raise MerchantApiError(str(e)) from e

    def create_discount_code(self, merchant_id: str, merchant_domain: str) -> Dict[str, Any]:
        """
        Issue a new discount code for a merchant.

        Returns:
            Response containing at least {"id": ..., "code": ...}
        """
        return self._make_request("POST", "/discount-codes", {
            "merchant_id": merchant_id,
            "merchant_domain": merchant_domain,
        })

    def send_payout(self, email: str, amount: Decimal, reference: str) -> Dict[str, Any]:
        """
        Disburse a commission to an affiliate.

        Args:
            email: Affiliate's email
            amount: Amount in major currency units
            reference: Order id, sent as the idempotency key so that a
                retried task never disburses twice
        """
        return self._make_request(
            "POST",
            "/payouts",
            {
                "email": email,
                "amount": str(amount),
                "reference": reference,
            },
            headers={"Idempotency-Key": reference},
        )


_merchant_api: Optional[MerchantApiService] = None


def get_merchant_api() -> MerchantApiService:
    """Get the configured merchant API client"""
    global _merchant_api
    if _merchant_api is None:
        _merchant_api = MerchantApiService()
    return _merchant_api


def set_merchant_api(api: Optional[MerchantApiService]) -> None:
    """Swap the merchant API client (tests, alternative platforms)"""
    global _merchant_api
    _merchant_api = api
