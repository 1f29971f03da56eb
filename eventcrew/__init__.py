import logging
import os
from datetime import date

import click
from dotenv import load_dotenv
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from eventcrew.config import config_by_env
from eventcrew.errors import AppError, register_error_handlers
from eventcrew.extensions import bcrypt, cache, csrf, db, limiter, login_manager, migrate
from eventcrew.integrations import init_app as init_integrations
from eventcrew.models import StaffUser
from eventcrew.routes.api.v1 import api_v1_bp
from eventcrew.routes.web.links import web_links_bp
from eventcrew.services import AuthService, ReminderService, SettlementService


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(StaffUser, int(user_id))


def create_app(env=None, integrations=None):
    """Build the application.

    ``integrations`` replaces the collaborators assembled from
    config; tests use it to pass fakes.
    """
    load_dotenv()
    env = env or os.getenv("FLASK_ENV", "development")

    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_by_env.get(env, config_by_env["development"]))
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if db_uri.startswith("sqlite:///") and not db_uri.startswith("sqlite:////") and db_uri != "sqlite:///:memory:":
        relative_path = db_uri.replace("sqlite:///", "", 1)
        absolute_path = os.path.join(project_root, relative_path)
        os.makedirs(os.path.dirname(absolute_path), exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{absolute_path}"

    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    csrf.init_app(app)
    cache.init_app(app)
    limiter.init_app(app)
    login_manager.init_app(app)
    init_integrations(app, integrations)
    _init_sentry(app, env)

    register_error_handlers(app)

    app.register_blueprint(web_links_bp)
    app.register_blueprint(api_v1_bp, url_prefix="/api/v1")
    _register_cli(app)

    if env == "development":
        with app.app_context():
            db.create_all()

    return app


def _init_sentry(app, env):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.05")),
            environment=env,
        )
        app.logger.info("Sentry initialized.")
    except Exception as exc:
        app.logger.warning("Sentry initialization failed: %s", exc)


def _register_cli(app):
    @app.cli.command("create-staff")
    @click.argument("email")
    @click.argument("full_name")
    @click.option("--role", default="staff", type=click.Choice(["staff", "admin"]))
    @click.password_option()
    def create_staff(email, full_name, role, password):
        """Create a staff login."""
        try:
            user = AuthService.create_staff(full_name, email, password, role=role)
        except AppError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"Created {user.role} {user.email}")

    @app.cli.command("send-reminders")
    @click.option("--date", "run_date", default=None, help="Treat this YYYY-MM-DD as today.")
    def send_reminders(run_date):
        """Email contractors whose accepted jobs are coming up."""
        today = date.fromisoformat(run_date) if run_date else None
        sent = ReminderService.send_due(today)
        click.echo(f"Sent {sent} reminder(s)")

    @app.cli.command("check-payments")
    @click.option("--date", "run_date", default=None, help="Treat this YYYY-MM-DD as today.")
    def check_payments(run_date):
        """Issue payment links for finished events and email the office."""
        today = date.fromisoformat(run_date) if run_date else None
        summary = SettlementService.collect_due(today)
        click.echo(
            f"Found {summary.contractor_payments} contractor payment(s) and {summary.client_balances} client balance(s)"
        )
