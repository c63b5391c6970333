"""
Identity Hub Verifier - verification of credentials published on Identity Hubs.

Supports:
- Identity Hub endpoint discovery from DID Documents
- Verifiable Credentials in JWT format (ES256 / P-256 signatures)
- did:web DID method resolution for issuer keys
- Batch verification that skips, and logs, credentials that fail
"""

from hub_verifier.credentials import Credential, CredentialEnvelope, JwtCredentialEnvelope
from hub_verifier.did_resolver import DIDDocument, DIDResolutionError, DIDResolver, Service
from hub_verifier.envelope import (
    CredentialEnvelopeVerifierRegistry,
    JwtCredentialEnvelopeVerifier,
)
from hub_verifier.hub_client import HttpIdentityHubClient, IdentityHubClient
from hub_verifier.jwt_verifier import DidJwtCredentialsVerifier, JwtCredentialsVerifier
from hub_verifier.result import ResponseStatus, Result, StatusResult
from hub_verifier.store import InMemoryIdentityHubStore
from hub_verifier.verifier import (
    IdentityHubCredentialsVerifier,
    create_verifier,
    get_verified_credentials,
)

__version__ = "0.1.0"

__all__ = [
    "Credential",
    "CredentialEnvelope",
    "JwtCredentialEnvelope",
    "DIDDocument",
    "DIDResolutionError",
    "DIDResolver",
    "Service",
    "CredentialEnvelopeVerifierRegistry",
    "JwtCredentialEnvelopeVerifier",
    "HttpIdentityHubClient",
    "IdentityHubClient",
    "DidJwtCredentialsVerifier",
    "JwtCredentialsVerifier",
    "ResponseStatus",
    "Result",
    "StatusResult",
    "InMemoryIdentityHubStore",
    "IdentityHubCredentialsVerifier",
    "create_verifier",
    "get_verified_credentials",
]
