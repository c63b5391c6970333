"""
Credential envelopes and the credentials they carry.

An envelope wraps the raw bytes a hub publishes for one credential, tagged
with its data format. Decoding reports failures as Result values so a caller
can skip a bad envelope without unwinding. A Credential is only materialized
from a token the envelope verifier has already checked.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import jwt

from hub_verifier.result import Result

JWT_VC_FORMAT = "application/vc+jwt"

STRING_HEADER_PARAMETERS = ("alg", "kid")


class JwtDecodeError(Exception):
    """Raised when a token is not a well-formed compact JWS."""


@dataclass(frozen=True)
class SignedJwt:
    """A parsed, not yet verified, compact JWS with a JSON claims set."""

    token: str
    header: dict[str, Any]
    claims: dict[str, Any]

    @classmethod
    def parse(cls, token: str) -> SignedJwt:
        """Parse a compact serialization without checking its signature.

        Raises:
            JwtDecodeError: If the token is not a compact JWS with a JSON
                object header and claims set.
        """
        token = token.strip()
        try:
            header = jwt.get_unverified_header(token)
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            raise JwtDecodeError(str(e)) from e

        for name in STRING_HEADER_PARAMETERS:
            if name in header and not isinstance(header[name], str):
                raise JwtDecodeError(f"JWT header parameter {name!r} must be a string")

        return cls(token=token, header=header, claims=claims)

    @property
    def algorithm(self) -> str | None:
        return self.header.get("alg")

    @property
    def key_id(self) -> str | None:
        return self.header.get("kid")

    @property
    def issuer(self) -> str | None:
        return self.claims.get("iss")

    @property
    def subject(self) -> str | None:
        return self.claims.get("sub")


@dataclass(frozen=True)
class Credential:
    """A verified credential.

    Only produced by materializing an envelope that passed verification.
    """

    id: str
    issuer: str
    subject: str
    claims: dict[str, Any] = field(default_factory=dict)
    contexts: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    issuance_date: str | None = None
    expiration_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "issuer": self.issuer,
            "subject": self.subject,
            "claims": self.claims,
            "contexts": list(self.contexts),
            "types": list(self.types),
            "issuanceDate": self.issuance_date,
            "expirationDate": self.expiration_date,
        }


class CredentialEnvelope:
    """Raw credential bytes tagged with their data format.

    Subclasses set ``format``; verification belongs to the envelope verifier
    registered for that format.
    """

    format: str

    def __init__(self, raw: bytes | str) -> None:
        self._raw = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)

    @property
    def raw(self) -> bytes:
        return self._raw

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CredentialEnvelope):
            return NotImplemented
        return self.format == other.format and self._raw == other._raw

    def __hash__(self) -> int:
        return hash((self.format, self._raw))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self._raw)} bytes)"


class JwtCredentialEnvelope(CredentialEnvelope):
    """Envelope for a Verifiable Credential encoded as a signed JWT.

    The credential lives in the ``vc`` claim; ``iss`` and ``sub`` of the
    token become the credential's issuer and subject.
    See https://www.w3.org/TR/vc-data-model/#json-web-token
    """

    format = JWT_VC_FORMAT

    def decode(self) -> Result[SignedJwt]:
        try:
            return Result.success(SignedJwt.parse(self._raw.decode("utf-8")))
        except UnicodeDecodeError:
            return Result.failure("Failed to decode JWT: not UTF-8 text")
        except JwtDecodeError as e:
            return Result.failure(f"Failed to decode JWT: {e}")


def credential_from_jwt(signed_jwt: SignedJwt) -> Result[Credential]:
    """Build a Credential from the ``vc`` claim of a verified JWT."""
    vc = signed_jwt.claims.get("vc")
    if not isinstance(vc, dict):
        return Result.failure("Missing or invalid 'vc' claim in JWT")

    credential_id = vc.get("id")
    if not isinstance(credential_id, str) or not credential_id:
        return Result.failure("Verifiable credential is missing required field 'id'")

    subject_claims = vc.get("credentialSubject", {})
    if not isinstance(subject_claims, dict):
        return Result.failure("Verifiable credential 'credentialSubject' must be an object")

    issuer = signed_jwt.issuer or _issuer_id(vc.get("issuer"))
    subject = signed_jwt.subject or subject_claims.get("id")
    if not isinstance(issuer, str) or not isinstance(subject, str):
        return Result.failure("Verifiable credential has no issuer or subject")

    return Result.success(Credential(
        id=credential_id,
        issuer=issuer,
        subject=subject,
        claims={k: v for k, v in subject_claims.items() if k != "id"},
        contexts=_as_tuple(vc.get("@context")),
        types=_as_tuple(vc.get("type")),
        issuance_date=vc.get("issuanceDate") or vc.get("validFrom"),
        expiration_date=vc.get("expirationDate") or vc.get("validUntil"),
    ))


def _issuer_id(issuer: Any) -> str | None:
    if isinstance(issuer, str):
        return issuer
    if isinstance(issuer, dict):
        return issuer.get("id")
    return None


def _as_tuple(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list):
        return tuple(v for v in value if isinstance(v, str))
    return ()
