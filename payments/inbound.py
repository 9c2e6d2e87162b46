"""Turn an inbound gateway request into a tagged body before any domain logic runs.

The gateway posts either the bare compact envelope (``application/jose``) or
an urlencoded form carrying it in a named field; the browser return arrives
as a form post or a query string.
"""
from dataclasses import dataclass, field
from typing import Union

from .exceptions import MalformedEnvelope

ENVELOPE_FIELDS = ("transaction_response", "msg", "response", "encrypted_response")
FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


@dataclass(frozen=True)
class RawEnvelope:
    envelope: str


@dataclass(frozen=True)
class StructuredForm:
    fields: dict = field(default_factory=dict)

    @property
    def envelope(self) -> str:
        for name in ENVELOPE_FIELDS:
            value = (self.fields.get(name) or "").strip()
            if value:
                return value
        return ""


InboundBody = Union[RawEnvelope, StructuredForm]


def parse_inbound(request) -> InboundBody:
    if request.method == "GET":
        return StructuredForm(request.GET.dict())
    content_type = (request.content_type or "").lower()
    if content_type in FORM_CONTENT_TYPES:
        return StructuredForm({**request.GET.dict(), **request.POST.dict()})
    # application/jose, text/plain, or no usable content type: the body is the envelope
    return RawEnvelope(request.body.decode("utf-8", "replace").strip())


def extract_envelope(body: InboundBody) -> str:
    envelope = body.envelope
    if not envelope:
        raise MalformedEnvelope("No envelope found in request")
    return envelope
