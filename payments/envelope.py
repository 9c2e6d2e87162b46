# payments/envelope.py
"""Gateway envelope codec.

Two shapes travel on the wire:

* sign-only (legacy)::

    b64url(header) . b64url(json payload) . b64url(HMAC-SHA256)

  with ``header = {"alg": "HS256", "clientid": ..., "kid": ...}``.

* encrypt-then-sign (current)::

    sign-only( JWE(json payload) )

  The JWE is a compact direct-key AES-256-GCM token
  (``protected..iv.ciphertext.tag``) whose protected header is
  ``{"alg": "dir", "enc": "A256GCM", "kid": ..., "clientid": ...}``.

The outer signature is always verified before anything is decrypted or
parsed, so a forged envelope never reaches the cipher or the JSON decoder.
"""
import hashlib
import json

import jwt
from jwcrypto import jwe, jwk
from jwcrypto.common import JWException, json_encode
from jwcrypto.common import base64url_encode as jose_base64url_encode

from .exceptions import DecryptionFailed, MalformedEnvelope, SignatureInvalid

SIGN_ALG = "HS256"
JWE_ALG = "dir"
JWE_ENC = "A256GCM"
AES_KEY_BYTES = 32


def _to_bytes(value) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return str(value or "").encode("utf-8")


def _json_bytes(payload) -> bytes:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def derive_encryption_key(secret) -> bytes:
    """A 32 byte secret is the AES key itself; anything else is hashed to 32 bytes."""
    raw = _to_bytes(secret)
    if len(raw) == AES_KEY_BYTES:
        return raw
    return hashlib.sha256(raw).digest()


# ---------- Sign layer (HS256) ----------
def _sign(payload: bytes, key, clientid: str, kid: str) -> str:
    headers = {"alg": SIGN_ALG, "clientid": clientid, "kid": kid, "typ": None}
    return jwt.api_jws.encode(payload, _to_bytes(key), algorithm=SIGN_ALG, headers=headers)


def _verify(compact, key) -> bytes:
    """Check segment count and HMAC. Returns the raw payload bytes."""
    if isinstance(compact, (bytes, bytearray)):
        compact = compact.decode("utf-8", "replace")
    if not isinstance(compact, str):
        raise MalformedEnvelope("Envelope must be a string")
    compact = compact.strip()
    segments = compact.count(".") + 1
    if segments != 3:
        raise MalformedEnvelope(f"Expected 3 segments in signed envelope, got {segments}")
    try:
        return jwt.api_jws.decode(compact, _to_bytes(key), algorithms=[SIGN_ALG])
    except jwt.InvalidTokenError as e:
        raise SignatureInvalid(f"Envelope signature rejected: {e}") from e


# ---------- Encryption layer (dir + A256GCM) ----------
def _encryption_jwk(secret) -> jwk.JWK:
    return jwk.JWK(kty="oct", k=jose_base64url_encode(derive_encryption_key(secret)))


def _encrypt(plaintext: bytes, secret, clientid: str, kid: str) -> str:
    """Compact JWE (dir + A256GCM) of ``plaintext`` with the shared secret."""
    token = jwe.JWE(
        plaintext=plaintext,
        protected=json_encode({"alg": JWE_ALG, "enc": JWE_ENC, "kid": kid, "clientid": clientid}),
    )
    token.add_recipient(_encryption_jwk(secret))
    return token.serialize(compact=True)


def _decrypt(token: str, secret) -> bytes:
    jwe_obj = jwe.JWE(algs=[JWE_ALG, JWE_ENC])
    try:
        jwe_obj.deserialize(token, key=_encryption_jwk(secret))
    except (jwe.InvalidJWEData, jwe.InvalidJWEOperation, JWException) as e:
        raise DecryptionFailed(f"Authenticated decryption failed: {e}") from e
    return jwe_obj.payload


def is_encrypted_token(payload: bytes) -> bool:
    try:
        text = payload.decode("ascii").strip()
    except UnicodeDecodeError:
        return False
    return text.count(".") == 4 and not text.startswith("{")


def _parse_json(data: bytes, error_cls):
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise error_cls(f"Envelope payload is not JSON: {e}") from e


# ---------- Public API ----------
def encode_signed(payload, key, clientid: str, kid: str) -> str:
    return _sign(_json_bytes(payload), key, clientid, kid)


def decode_signed(compact, key):
    return _parse_json(_verify(compact, key), MalformedEnvelope)


def encode_encrypted(payload, enc_key, sign_key, clientid: str, kid: str) -> str:
    inner = _encrypt(_json_bytes(payload), enc_key, clientid, kid)
    return _sign(inner.encode("ascii"), sign_key, clientid, kid)


def decode_encrypted(compact, enc_key, sign_key):
    """
    1) Verify the outer HS256 signature (SignatureInvalid short-circuits)
    2) Take the JWE out of the verified payload
    3) Decrypt it (DecryptionFailed) and parse the JSON
    """
    inner = _verify(compact, sign_key)
    if not is_encrypted_token(inner):
        raise MalformedEnvelope("Signed payload does not carry an encrypted token")
    return _parse_json(_decrypt(inner.decode("ascii").strip(), enc_key), DecryptionFailed)


class EnvelopeCodec:
    """Keys and identifiers bound once; shape chosen by ``encrypt``."""

    def __init__(self, *, signing_secret, encryption_secret, client_id, key_id, encrypt=True):
        self.signing_secret = signing_secret
        self.encryption_secret = encryption_secret
        self.client_id = client_id
        self.key_id = key_id
        self.encrypt = encrypt

    def encode(self, payload) -> str:
        if self.encrypt:
            return encode_encrypted(payload, self.encryption_secret, self.signing_secret, self.client_id, self.key_id)
        return encode_signed(payload, self.signing_secret, self.client_id, self.key_id)

    def decode(self, compact):
        """Verify, then decrypt if the verified payload is a JWE, else parse it as JSON.

        The gateway answers in either shape regardless of how we sent the
        request, so the shape is read from the verified payload.
        """
        inner = _verify(compact, self.signing_secret)
        if is_encrypted_token(inner):
            if not self.encryption_secret:
                raise DecryptionFailed("Encrypted envelope received but no encryption secret is configured")
            return _parse_json(_decrypt(inner.decode("ascii").strip(), self.encryption_secret), DecryptionFailed)
        return _parse_json(inner, MalformedEnvelope)
