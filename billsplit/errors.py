# billsplit/errors.py
from __future__ import annotations

import time
from typing import Any, Optional

import requests
from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

VALIDATION_ERROR = "VALIDATION_ERROR"
DATABASE_ERROR = "DATABASE_ERROR"
AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
NETWORK_ERROR = "NETWORK_ERROR"
BUSINESS_LOGIC_ERROR = "BUSINESS_LOGIC_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"

AUTH_REASONS = ("INVALID_CREDENTIALS", "TOKEN_EXPIRED", "INSUFFICIENT_PERMISSIONS", "ACCOUNT_LOCKED")
DB_OPERATIONS = ("CREATE", "READ", "UPDATE", "DELETE")


class AppError(Exception):
    """Base of the application's error taxonomy.

    The taxonomy only drives message formatting and the HTTP status of the
    response; nothing retries or recovers based on it.
    """

    code = UNKNOWN_ERROR
    status_code = 500

    def __init__(self, message: str, context: Optional[dict] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.timestamp = int(time.time() * 1000)
        if status_code is not None:
            self.status_code = status_code

    def details(self) -> dict:
        return {}

    def to_dict(self) -> dict:
        data = {
            "error": self.code.lower(),
            "title": get_error_title(self),
            "message": get_error_message(self),
        }
        data.update({k: v for k, v in self.details().items() if v is not None})
        return data


class ValidationError(AppError):
    code = VALIDATION_ERROR
    status_code = 400

    def __init__(self, message, field=None, value=None, schema=None, context=None):
        super().__init__(message, context)
        self.field = field
        self.value = value
        self.schema = schema

    def details(self):
        return {"field": self.field}


class DatabaseError(AppError):
    code = DATABASE_ERROR
    status_code = 500

    def __init__(self, message, operation="READ", table=None, record_id=None, context=None):
        super().__init__(message, context)
        if operation not in DB_OPERATIONS:
            raise ValueError(f"Unknown database operation: {operation}")
        self.operation = operation
        self.table = table
        self.record_id = record_id

    def details(self):
        return {"operation": self.operation, "table": self.table}


class AuthenticationError(AppError):
    code = AUTHENTICATION_ERROR
    status_code = 401

    def __init__(self, message, reason="INVALID_CREDENTIALS", user_id=None, context=None):
        super().__init__(message, context)
        if reason not in AUTH_REASONS:
            raise ValueError(f"Unknown authentication reason: {reason}")
        self.reason = reason
        self.user_id = user_id
        if reason == "INSUFFICIENT_PERMISSIONS":
            self.status_code = 403

    def details(self):
        return {"reason": self.reason}


class NetworkError(AppError):
    code = NETWORK_ERROR
    status_code = 502

    def __init__(self, message, url=None, http_status=None, method=None, context=None):
        super().__init__(message, context)
        self.url = url
        self.http_status = http_status
        self.method = method

    def details(self):
        return {"upstream_status": self.http_status}


class BusinessLogicError(AppError):
    code = BUSINESS_LOGIC_ERROR
    status_code = 409

    def __init__(self, message, operation, entity=None, entity_id=None, context=None, status_code=None):
        super().__init__(message, context, status_code)
        self.operation = operation
        self.entity = entity
        self.entity_id = entity_id

    def details(self):
        return {"operation": self.operation, "entity": self.entity}


class NotFoundError(BusinessLogicError):
    status_code = 404

    def __init__(self, entity, entity_id=None, message=None):
        super().__init__(
            message or f"{entity} not found or does not belong to user.",
            operation="lookup",
            entity=entity,
            entity_id=entity_id,
        )


class UnknownError(AppError):
    code = UNKNOWN_ERROR
    status_code = 500

    def __init__(self, message="Unknown error occurred", original_error=None, context=None):
        super().__init__(message, context)
        self.original_error = original_error


def convert_to_app_error(error: Any) -> AppError:
    """Normalize anything raised inside a handler into an AppError."""
    if isinstance(error, AppError):
        return error

    if isinstance(error, SQLAlchemyError):
        first_line = next(iter(str(error).splitlines()), "")
        return DatabaseError(f"{error.__class__.__name__}: {first_line}", context={"original_error": repr(error)})

    if isinstance(error, requests.RequestException):
        response = getattr(error, "response", None)
        request = getattr(error, "request", None)
        return NetworkError(
            str(error),
            url=getattr(request, "url", None),
            http_status=getattr(response, "status_code", None),
            method=getattr(request, "method", None),
        )

    if isinstance(error, Exception):
        text = str(error)
        lowered = text.lower()
        if "database" in lowered or "sql" in lowered:
            return DatabaseError(text, context={"original_error": repr(error)})
        if "auth" in lowered or "token" in lowered:
            return AuthenticationError(text, context={"original_error": repr(error)})
        if "network" in lowered or "fetch" in lowered:
            return NetworkError(text, context={"original_error": repr(error)})
        return UnknownError(text or error.__class__.__name__, original_error=error)

    if isinstance(error, str):
        return UnknownError(error)

    if isinstance(error, dict):
        return UnknownError(error.get("message") or "Unknown error occurred", original_error=error)

    return UnknownError("Unknown error occurred", original_error=error)


def get_error_message(error: AppError) -> str:
    if isinstance(error, ValidationError):
        return f"Validation error in {error.field}: {error.message}" if error.field else error.message
    if isinstance(error, DatabaseError):
        return f"Database error during {error.operation.lower()}: {error.message}"
    if isinstance(error, AuthenticationError):
        return f"Authentication error: {error.message}"
    if isinstance(error, NetworkError):
        return f"Network error ({error.http_status}): {error.message}" if error.http_status else error.message
    if isinstance(error, BusinessLogicError):
        # not-found messages already name the entity
        if error.entity and not isinstance(error, NotFoundError):
            return f"Business logic error in {error.entity}: {error.message}"
        return error.message
    return error.message


def get_error_title(error: AppError) -> str:
    return {
        VALIDATION_ERROR: "Validation Error",
        DATABASE_ERROR: "Database Error",
        AUTHENTICATION_ERROR: "Authentication Error",
        NETWORK_ERROR: "Network Error",
        BUSINESS_LOGIC_ERROR: "Business Logic Error",
    }.get(error.code, "Error")


def register_error_handlers(app):
    from .extensions import db

    @app.errorhandler(AppError)
    def app_error(e):
        level = app.logger.error if e.status_code >= 500 else app.logger.info
        level("[%s] %s", e.code, get_error_message(e))
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def database_error(e):
        db.session.rollback()
        app.logger.exception("Database failure: %s", e)
        err = convert_to_app_error(e)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify(error="bad_request", message=getattr(e, "description", "Bad Request")), 400

    @app.errorhandler(401)
    def unauthorized(e): return jsonify(error="unauthorized"), 401

    @app.errorhandler(403)
    def forbidden(e): return jsonify(error="forbidden"), 403

    @app.errorhandler(404)
    def not_found(e): return jsonify(error="not_found"), 404

    @app.errorhandler(405)
    def method_not_allowed(e): return jsonify(error="method_not_allowed"), 405

    @app.errorhandler(422)
    def unprocessable(e): return jsonify(error="unprocessable"), 422

    @app.errorhandler(500)
    def server_error(e):
        original = getattr(e, "original_exception", None)
        if original is not None and not isinstance(original, HTTPException):
            app.logger.exception("Unhandled exception: %s", original)
        return jsonify(error="server_error"), 500
