from functools import wraps

from flask import abort, current_app, redirect, url_for
from flask_login import current_user

from eventcrew.errors import WorkflowError
from eventcrew.extensions import db


def role_required(*roles):
    def wrapper(func):
        @wraps(func)
        def inner(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            if current_user.role not in roles:
                abort(403)
            return func(*args, **kwargs)

        return inner

    return wrapper


def link_handler(page):
    """Turn the outcome of an emailed-link handler into a result redirect.

    Expected workflow outcomes keep their own code. Anything else rolls the
    session back and is reported as ``server_error``.
    """

    def wrapper(func):
        @wraps(func)
        def inner(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except WorkflowError as err:
                db.session.rollback()
                current_app.logger.info("%s link rejected: %s", page, err.code)
                return redirect(url_for("web_links.result", type=page, error=err.code))
            except Exception:
                db.session.rollback()
                current_app.logger.exception("%s link failed", page)
                return redirect(url_for("web_links.result", type=page, error="server_error"))

        return inner

    return wrapper
