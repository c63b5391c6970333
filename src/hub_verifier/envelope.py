"""
Envelope verifiers.

An envelope verifier turns one format-specific envelope into a verified
Credential, or into a failed Result explaining why it was rejected.
"""

from __future__ import annotations

from typing import Protocol, TypeVar

from hub_verifier.credentials import (
    Credential,
    CredentialEnvelope,
    JwtCredentialEnvelope,
    credential_from_jwt,
)
from hub_verifier.did_resolver import DIDDocument
from hub_verifier.jwt_verifier import JwtCredentialsVerifier
from hub_verifier.result import Result

E = TypeVar("E", bound=CredentialEnvelope, contravariant=True)


class CredentialEnvelopeVerifier(Protocol[E]):
    """Verifies envelopes of one data format."""

    def verify(self, envelope: E, did_document: DIDDocument) -> Result[Credential]:
        ...


class JwtCredentialEnvelopeVerifier:
    """Verifier for Verifiable Credentials in JWT format.

    Steps, each short-circuiting on failure:
    1. Decode the compact JWS
    2. Claims (subject must be the DID Document id)
    3. Issuer signature
    4. Materialize the credential from the ``vc`` claim

    See https://www.w3.org/TR/vc-data-model/#example-usage-of-the-id-property
    """

    def __init__(self, jwt_credentials_verifier: JwtCredentialsVerifier) -> None:
        self.jwt_credentials_verifier = jwt_credentials_verifier

    def verify(
        self, envelope: JwtCredentialEnvelope, did_document: DIDDocument
    ) -> Result[Credential]:
        if not isinstance(envelope, JwtCredentialEnvelope):
            return Result.failure(
                f"Expected a JWT credential envelope, got {type(envelope).__name__}"
            )

        decoded = envelope.decode()
        if decoded.failed:
            return Result.failure(*decoded.failure_messages)
        signed_jwt = decoded.content

        claims_result = self.jwt_credentials_verifier.verify_claims(signed_jwt, did_document.id)
        if claims_result.failed:
            return Result.failure(*claims_result.failure_messages)

        signature_result = self.jwt_credentials_verifier.is_signed_by_issuer(signed_jwt)
        if signature_result.failed:
            return Result.failure(*signature_result.failure_messages)

        return credential_from_jwt(signed_jwt)


class CredentialEnvelopeVerifierRegistry:
    """Envelope verifiers keyed by envelope data format."""

    def __init__(self) -> None:
        self._verifiers: dict[str, CredentialEnvelopeVerifier] = {}

    def register(self, data_format: str, verifier: CredentialEnvelopeVerifier) -> None:
        self._verifiers[data_format] = verifier

    def resolve(self, data_format: str) -> CredentialEnvelopeVerifier | None:
        return self._verifiers.get(data_format)

    def verify(
        self, envelope: CredentialEnvelope, did_document: DIDDocument
    ) -> Result[Credential]:
        """Verify an envelope with the verifier registered for its format."""
        verifier = self.resolve(envelope.format)
        if verifier is None:
            return Result.failure(f"No verifier registered for format {envelope.format}")
        return verifier.verify(envelope, did_document)

    @classmethod
    def for_jwt(
        cls, jwt_credentials_verifier: JwtCredentialsVerifier
    ) -> CredentialEnvelopeVerifierRegistry:
        registry = cls()
        registry.register(
            JwtCredentialEnvelope.format,
            JwtCredentialEnvelopeVerifier(jwt_credentials_verifier),
        )
        return registry
