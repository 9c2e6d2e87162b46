class PaymentError(Exception):
    pass


class ValidationError(PaymentError):
    """Bad input shape. The caller can correct it and retry."""


class EnvelopeError(PaymentError):
    """Integrity failure of a gateway envelope. The payload must not be trusted."""

    stage = "envelope"


class MalformedEnvelope(EnvelopeError):
    stage = "parse"


class SignatureInvalid(EnvelopeError):
    stage = "signature"


class DecryptionFailed(EnvelopeError):
    stage = "decryption"


class GatewayUnavailable(PaymentError):
    """Timeout or connection failure. Says nothing about the payment itself."""


class GatewayError(PaymentError):
    """The gateway answered with a non-2xx status."""

    def __init__(self, message, *, status_code=None, detail=None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class OrderNotFound(PaymentError):
    pass


class DuplicateOrderId(PaymentError):
    pass
