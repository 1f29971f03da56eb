import logging
from dataclasses import dataclass
from decimal import Decimal

from eventcrew.errors import UpstreamUnavailable
from eventcrew.integrations import get_integrations

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ResolvedAmount:
    amount: Decimal
    source: str  # "sheet", "override", "cached" or "none"


class ReconciliationService:
    @staticmethod
    def resolve_amount(booking, override=None):
        """Work out what to charge for ``booking`` right now.

        The quote sheet is the system of record when it is reachable and holds
        a positive total; otherwise an explicit override wins over the cached
        ``quote_total``. Nothing here is memoized: every send and resend reads
        the sheet again.
        """
        if booking.quote_sheet_id:
            try:
                total = get_integrations().sheets.read_total(booking.quote_sheet_id)
            except UpstreamUnavailable as exc:
                logger.warning(
                    "Quote sheet %s unreadable for booking %s, using fallback: %s",
                    booking.quote_sheet_id,
                    booking.id,
                    exc.message,
                )
            else:
                if total is not None and total > 0:
                    return ResolvedAmount(Decimal(total).quantize(CENTS), "sheet")
                logger.info("Quote sheet %s has no positive total for booking %s", booking.quote_sheet_id, booking.id)

        if override:
            return ResolvedAmount(Decimal(str(override)).quantize(CENTS), "override")
        if booking.quote_total:
            return ResolvedAmount(Decimal(str(booking.quote_total)).quantize(CENTS), "cached")
        return ResolvedAmount(Decimal("0.00"), "none")

    @staticmethod
    def deposit_for(amount, percent):
        """Deposit owed on ``amount``; ``None`` when no percentage is configured."""
        if percent is None:
            return None
        return (Decimal(amount) * Decimal(str(percent)) / Decimal("100")).quantize(CENTS)

    @staticmethod
    def deposit_percent(deposit_amount, quote_total):
        if deposit_amount is None or not quote_total or Decimal(str(quote_total)) <= 0:
            return None
        return int((Decimal(str(deposit_amount)) / Decimal(str(quote_total)) * 100).quantize(Decimal("1")))
