import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation

import requests

from eventcrew.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

SHEETS_URL = "https://sheets.googleapis.com/v4/spreadsheets/{sheet_id}/values/{range}"


class QuoteSheetReader(ABC):
    @abstractmethod
    def read_total(self, sheet_id):
        """Return the sheet's computed total as a Decimal.

        Raises UpstreamUnavailable when the document cannot be read.
        """


class GoogleQuoteSheetReader(QuoteSheetReader):
    """Reads the ``Totals`` tab: column A holds keys, column B the values."""

    totals_range = "Totals!A:B"

    def __init__(self, credentials, timeout=15):
        self.credentials = credentials
        self.timeout = timeout

    def read_total(self, sheet_id):
        url = SHEETS_URL.format(sheet_id=sheet_id, range=self.totals_range)
        try:
            response = requests.get(
                url,
                headers=self.credentials.headers(),
                params={"valueRenderOption": "UNFORMATTED_VALUE"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            rows = response.json().get("values", [])
        except (requests.exceptions.RequestException, ValueError) as exc:
            logger.error("Reading quote sheet %s failed: %s", sheet_id, exc)
            raise UpstreamUnavailable("Quote sheet could not be read.") from exc

        totals = {}
        for row in rows:
            if len(row) >= 2:
                totals[str(row[0]).strip().lower()] = row[1]
        try:
            total = Decimal(str(totals["total"]))
        except (KeyError, InvalidOperation) as exc:
            raise UpstreamUnavailable("Quote sheet has no readable total.") from exc
        if not total.is_finite():
            raise UpstreamUnavailable("Quote sheet has no readable total.")
        return total


class UnconfiguredSheetReader(QuoteSheetReader):
    def read_total(self, sheet_id):
        raise UpstreamUnavailable("Quote sheets are not configured.")
