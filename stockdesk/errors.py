"""
Error taxonomy shared by the client, the data layer and the views
"""
from typing import Dict, Optional


class StockdeskError(Exception):
    """Base class for every error raised by stockdesk"""


class ValidationError(StockdeskError):
    """Form input rejected before any request is sent.

    ``errors`` maps each offending field to the message of the first rule it broke.
    """

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        summary = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        super().__init__(f"Invalid input ({summary})")


class StoreError(StockdeskError):
    """The remote store answered with a non-success status"""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"HTTP {self.status_code}")
        if self.detail:
            parts.append(self.detail)
        return ": ".join(parts)


class NetworkError(StoreError):
    """The store could not be reached at all"""


class ResponseShapeError(StoreError):
    """The store answered 2xx but the body does not decode into the expected entities"""


class NotFoundError(StockdeskError):
    """A single-entity read, update or delete matched no rows"""

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class AuthError(StockdeskError):
    """Sign-in was refused"""
