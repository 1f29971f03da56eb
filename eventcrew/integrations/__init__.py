"""Collaborators the workflow talks to, built once per application.

The services never read credentials or URLs from the environment; they ask
``get_integrations()`` for the container that ``create_app`` assembled (or that
a test passed in).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from flask import current_app

from eventcrew.integrations.calendar import CalendarClient, GoogleCalendarClient, UnconfiguredCalendar
from eventcrew.integrations.google import GoogleCredentials
from eventcrew.integrations.mailer import LogMailer, Mailer, ResendMailer
from eventcrew.integrations.payments import PaymentGateway, PoliGateway, UnconfiguredGateway
from eventcrew.integrations.sheets import GoogleQuoteSheetReader, QuoteSheetReader, UnconfiguredSheetReader

EXTENSION_KEY = "eventcrew.integrations"


@dataclass(frozen=True)
class WorkflowSettings:
    site_url: str
    business_email: str
    default_deposit_percent: Optional[Decimal] = Decimal("50")
    reminder_lead_days: int = 14

    @classmethod
    def from_config(cls, config):
        raw_percent = config.get("DEFAULT_DEPOSIT_PERCENT")
        return cls(
            site_url=str(config["SITE_URL"]).rstrip("/"),
            business_email=config["BUSINESS_EMAIL"],
            default_deposit_percent=Decimal(str(raw_percent)) if raw_percent not in (None, "") else None,
            reminder_lead_days=int(config.get("REMINDER_LEAD_DAYS", 14)),
        )


@dataclass
class Integrations:
    settings: WorkflowSettings
    mailer: Mailer
    sheets: QuoteSheetReader
    calendar: CalendarClient
    payments: PaymentGateway


def build_integrations(config):
    timeout = float(config.get("COLLABORATOR_TIMEOUT", 15))

    if config.get("RESEND_API_KEY"):
        mailer = ResendMailer(config["RESEND_API_KEY"], config["MAIL_SENDER"], timeout=timeout)
    else:
        mailer = LogMailer()

    if config.get("GOOGLE_CLIENT_ID") and config.get("GOOGLE_CLIENT_SECRET") and config.get("GOOGLE_REFRESH_TOKEN"):
        credentials = GoogleCredentials(
            config["GOOGLE_CLIENT_ID"],
            config["GOOGLE_CLIENT_SECRET"],
            config["GOOGLE_REFRESH_TOKEN"],
            timeout=timeout,
        )
        sheets = GoogleQuoteSheetReader(credentials, timeout=timeout)
        calendar = GoogleCalendarClient(
            credentials,
            calendar_id=config.get("GOOGLE_CALENDAR_ID", "primary"),
            timezone=config.get("CALENDAR_TIMEZONE", "Pacific/Auckland"),
            timeout=timeout,
        )
    else:
        sheets = UnconfiguredSheetReader()
        calendar = UnconfiguredCalendar()

    if config.get("POLI_MERCHANT_CODE") and config.get("POLI_AUTH_CODE"):
        payments = PoliGateway(
            config["POLI_MERCHANT_CODE"],
            config["POLI_AUTH_CODE"],
            query_url=config["POLI_QUERY_URL"],
            initiate_url=config["POLI_INITIATE_URL"],
            homepage_url=str(config["SITE_URL"]).rstrip("/"),
            currency=config.get("PAYMENT_CURRENCY", "NZD"),
            timeout=timeout,
        )
    else:
        payments = UnconfiguredGateway()

    return Integrations(
        settings=WorkflowSettings.from_config(config),
        mailer=mailer,
        sheets=sheets,
        calendar=calendar,
        payments=payments,
    )


def init_app(app, integrations=None):
    app.extensions[EXTENSION_KEY] = integrations or build_integrations(app.config)


def get_integrations():
    return current_app.extensions[EXTENSION_KEY]
