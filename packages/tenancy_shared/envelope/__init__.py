"""Envelope types shared by Tenancy service boundaries."""

from .envelope import Envelope, Payload, failure, success
from .meta import EnvelopeKind, EnvelopeMeta, new_meta, utc_now, validate_meta

__all__ = [
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "Payload",
    "failure",
    "new_meta",
    "success",
    "utc_now",
    "validate_meta",
]
