"""Exceptions raised by the service client and surfaced as notifications."""

from typing import Optional

import requests


class FlowManagerError(Exception):
    """Base class for all Flow Version Manager errors"""

    def __init__(self, message: str, detail: Optional[object] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ConfigError(FlowManagerError):
    pass


class AuthenticationError(FlowManagerError):
    pass


class AccessDeniedError(FlowManagerError):
    """The running user may not manage Flow versions. Terminal for the session."""


class QueryError(FlowManagerError):
    """A read (listing, version fetch, access check) failed."""


class DeleteRequestError(FlowManagerError):
    """The delete request failed before any item was processed."""


def response_detail(exc: requests.exceptions.RequestException) -> Optional[object]:
    """Pull the Salesforce error payload (or raw text) out of a failed request"""
    response = getattr(exc, 'response', None)
    if response is None:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def reduce_error(error) -> str:
    """Turn anything raised by a service call into a single readable message"""
    if isinstance(error, str):
        return error
    detail = getattr(error, 'detail', None)
    # Salesforce returns a list of {"message": ..., "errorCode": ...}
    if isinstance(detail, list) and detail and isinstance(detail[0], dict) and detail[0].get('message'):
        return f"{getattr(error, 'message', error)}: {detail[0]['message']}"
    if isinstance(detail, dict) and detail.get('message'):
        return f"{getattr(error, 'message', error)}: {detail['message']}"
    if getattr(error, 'message', None):
        return error.message
    if str(error):
        return str(error)
    return repr(error)
