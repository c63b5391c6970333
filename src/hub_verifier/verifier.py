"""
Identity Hub credentials verifier.

Fetches the credentials published on a subject's Identity Hub and keeps the
ones that verify. Per-credential failures are logged and skipped; only a
missing hub endpoint or a failed fetch fails the whole call.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from hub_verifier.credentials import Credential, CredentialEnvelope, JwtCredentialEnvelope
from hub_verifier.did_resolver import DIDDocument, DIDResolver, IDENTITY_HUB_SERVICE_TYPE
from hub_verifier.envelope import CredentialEnvelopeVerifierRegistry
from hub_verifier.hub_client import HttpIdentityHubClient, IdentityHubClient
from hub_verifier.jwt_verifier import DEFAULT_LEEWAY_SECONDS, DidJwtCredentialsVerifier
from hub_verifier.result import Result

log = logging.getLogger(__name__)

HUB_URL_NOT_RESOLVED = "Failed getting Identity Hub URL"


class IdentityHubCredentialsVerifier:
    """Batch verifier for credentials held by an Identity Hub.

    Note that an empty successful result does not tell "nothing published"
    apart from "nothing verified"; rejected credentials only show up as
    warnings in the log.
    """

    def __init__(
        self,
        hub_client: IdentityHubClient,
        verifier_registry: CredentialEnvelopeVerifierRegistry,
        envelope_factory: Callable[[bytes], CredentialEnvelope] = JwtCredentialEnvelope,
        max_workers: int = 1,
    ) -> None:
        """Initialize the verifier.

        Args:
            hub_client: Client used to fetch raw envelopes.
            verifier_registry: Envelope verifiers by data format.
            envelope_factory: Wraps raw hub entries into envelopes.
            max_workers: Threads used for per-credential verification.
                1 verifies inline. Output order is preserved either way.
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.hub_client = hub_client
        self.verifier_registry = verifier_registry
        self.envelope_factory = envelope_factory
        self.max_workers = max_workers

    def get_verified_credentials(self, did_document: DIDDocument) -> Result[list[Credential]]:
        """Get the verified credentials published on the subject's Identity Hub.

        Args:
            did_document: DID Document of the subject.

        Returns:
            Success with the credentials that passed verification, in hub
            order, or a failure if the hub could not be located or queried.
        """
        hub_base_url = self._get_identity_hub_base_url(did_document)
        if hub_base_url.failed:
            return Result.failure(*hub_base_url.failure_messages)

        fetched = self.hub_client.get_verifiable_credentials(hub_base_url.content)
        if fetched.failed:
            log.info(
                "Failed to fetch credentials from %s: %s",
                hub_base_url.content,
                fetched.failure_detail,
            )
            return Result.failure(*fetched.failure_messages)

        envelopes = [self.envelope_factory(raw) for raw in fetched.content or []]
        outcomes = self._verify_all(envelopes, did_document)

        credentials: list[Credential] = []
        for outcome in outcomes:
            if outcome.failed:
                log.warning("Invalid credential: %s", outcome.failure_detail)
                continue
            credentials.append(outcome.content)

        log.info(
            "Verified %d of %d credentials from %s",
            len(credentials),
            len(envelopes),
            hub_base_url.content,
        )
        return Result.success(credentials)

    def _get_identity_hub_base_url(self, did_document: DIDDocument) -> Result[str]:
        service = did_document.get_service(IDENTITY_HUB_SERVICE_TYPE)
        if service is None:
            return Result.failure(HUB_URL_NOT_RESOLVED)
        return Result.success(service.service_endpoint)

    def _verify_all(
        self, envelopes: list[CredentialEnvelope], did_document: DIDDocument
    ) -> list[Result[Credential]]:
        def verify(envelope: CredentialEnvelope) -> Result[Credential]:
            return self.verifier_registry.verify(envelope, did_document)

        if self.max_workers == 1 or len(envelopes) < 2:
            return [verify(envelope) for envelope in envelopes]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(verify, envelopes))


def create_verifier(
    timeout: float = 30.0,
    verify_ssl: bool = True,
    leeway: int = DEFAULT_LEEWAY_SECONDS,
    max_workers: int = 1,
) -> IdentityHubCredentialsVerifier:
    """Build a verifier wired with the HTTP hub client and did:web issuer keys.

    Args:
        timeout: HTTP request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates.
        leeway: Accepted clock skew in seconds for JWT time claims.
        max_workers: Threads used for per-credential verification.
    """
    jwt_verifier = DidJwtCredentialsVerifier(
        did_resolver=DIDResolver(timeout=timeout, verify_ssl=verify_ssl),
        leeway=leeway,
    )
    return IdentityHubCredentialsVerifier(
        hub_client=HttpIdentityHubClient(timeout=timeout, verify_ssl=verify_ssl),
        verifier_registry=CredentialEnvelopeVerifierRegistry.for_jwt(jwt_verifier),
        max_workers=max_workers,
    )


def get_verified_credentials(
    did_document: DIDDocument,
    verify_ssl: bool = True,
) -> Result[list[Credential]]:
    """Convenience function to verify the credentials of a subject.

    Args:
        did_document: DID Document of the subject.
        verify_ssl: Whether to verify SSL certificates.
    """
    return create_verifier(verify_ssl=verify_ssl).get_verified_credentials(did_document)
