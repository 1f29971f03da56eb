import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import requests

from eventcrew.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass
class TransactionStatus:
    status_code: str
    reference: Optional[str] = None

    @property
    def completed(self):
        return self.status_code == "Completed"


@dataclass
class InitiatedTransaction:
    transaction_token: str
    navigate_url: str


@dataclass
class PaymentRequest:
    amount: Decimal
    merchant_reference: str
    success_url: str
    failure_url: str
    cancellation_url: str
    notification_url: str
    merchant_data: str = ""


class PaymentGateway(ABC):
    @abstractmethod
    def initiate(self, payment_request):
        """Open a transaction and return where to send the payer."""

    @abstractmethod
    def get_transaction(self, transaction_token):
        """Return the TransactionStatus for a gateway transaction token."""


class PoliGateway(PaymentGateway):
    def __init__(self, merchant_code, auth_code, query_url, initiate_url, homepage_url, currency="NZD", timeout=15):
        self.auth = (merchant_code, auth_code)
        self.query_url = query_url
        self.initiate_url = initiate_url
        self.homepage_url = homepage_url
        self.currency = currency
        self.timeout = timeout

    def initiate(self, payment_request):
        body = {
            "Amount": f"{payment_request.amount:.2f}",
            "CurrencyCode": self.currency,
            "MerchantReference": payment_request.merchant_reference,
            "MerchantReferenceFormat": 1,
            "MerchantData": payment_request.merchant_data,
            "MerchantHomepageURL": self.homepage_url,
            "SuccessURL": payment_request.success_url,
            "FailureURL": payment_request.failure_url,
            "CancellationURL": payment_request.cancellation_url,
            "NotificationURL": payment_request.notification_url,
        }
        try:
            response = requests.post(self.initiate_url, json=body, auth=self.auth, timeout=self.timeout)
            payload = response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            logger.error("Payment initiation failed: %s", exc)
            raise UpstreamUnavailable("Payment gateway is unavailable.") from exc

        if not response.ok or not payload.get("NavigateURL") or not payload.get("TransactionToken"):
            logger.error("Payment initiation rejected (%s): %s", response.status_code, payload.get("ErrorMessage"))
            raise UpstreamUnavailable(payload.get("ErrorMessage") or "Payment could not be started.")
        return InitiatedTransaction(transaction_token=payload["TransactionToken"], navigate_url=payload["NavigateURL"])

    def get_transaction(self, transaction_token):
        try:
            response = requests.get(
                self.query_url,
                params={"token": transaction_token},
                auth=self.auth,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            logger.error("Payment gateway query failed: %s", exc)
            raise UpstreamUnavailable("Payment gateway is unavailable.") from exc
        return TransactionStatus(
            status_code=payload.get("TransactionStatusCode") or "Unknown",
            reference=payload.get("TransactionRefNo"),
        )


class UnconfiguredGateway(PaymentGateway):
    def initiate(self, payment_request):
        raise UpstreamUnavailable("Payment gateway is not configured.")

    def get_transaction(self, transaction_token):
        raise UpstreamUnavailable("Payment gateway is not configured.")
