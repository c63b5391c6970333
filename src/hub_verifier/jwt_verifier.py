"""
JWT claim and signature checks for credentials published on an Identity Hub.

Supported:
- Algorithm: ES256 (ECDSA P-256 with SHA-256)
- Issuer key resolution: did:web, via the issuer's verification methods
"""

from __future__ import annotations

import logging
from typing import Protocol

import jwt

from hub_verifier.credentials import SignedJwt
from hub_verifier.did_resolver import (
    DIDDocument,
    DIDResolutionError,
    DIDResolver,
    PublicKeyJWK,
)
from hub_verifier.result import Result

log = logging.getLogger(__name__)

DEFAULT_LEEWAY_SECONDS = 60


class JwtCredentialsVerifier(Protocol):
    """Claim and signature checks consumed by the JWT envelope verifier."""

    def verify_claims(self, token: SignedJwt, expected_subject: str) -> Result[None]:
        """Check iss/sub/exp/nbf consistency against the expected subject."""
        ...

    def is_signed_by_issuer(self, token: SignedJwt) -> Result[None]:
        """Check the signature against key material of the JWT issuer."""
        ...


class DocumentResolver(Protocol):
    def resolve(self, did: str) -> DIDDocument:
        ...


class DidJwtCredentialsVerifier:
    """Verifies JWT credentials whose issuers are resolvable DIDs."""

    SUPPORTED_ALGORITHMS = ("ES256",)
    REQUIRED_CLAIMS = ("iss", "sub")

    def __init__(
        self,
        did_resolver: DocumentResolver | None = None,
        leeway: int = DEFAULT_LEEWAY_SECONDS,
    ) -> None:
        """Initialize the verifier.

        Args:
            did_resolver: Resolver for issuer DIDs. Created if not provided.
            leeway: Accepted clock skew in seconds for exp, nbf and iat.
        """
        self.did_resolver = did_resolver or DIDResolver()
        self.leeway = leeway

    def verify_claims(self, token: SignedJwt, expected_subject: str) -> Result[None]:
        try:
            claims = jwt.decode(
                token.token,
                options={
                    "verify_signature": False,
                    "verify_exp": True,
                    "verify_nbf": True,
                    "verify_iat": True,
                    "require": list(self.REQUIRED_CLAIMS),
                },
                leeway=self.leeway,
            )
        # int() of a list or object valued time claim raises TypeError
        except (jwt.PyJWTError, TypeError) as e:
            return Result.failure(f"Claim verification failed. {e}")

        if claims["sub"] != expected_subject:
            return Result.failure(
                "Claim verification failed. JWT sub claim "
                f"{claims['sub']!r} does not match expected subject {expected_subject!r}"
            )

        return Result.success()

    def is_signed_by_issuer(self, token: SignedJwt) -> Result[None]:
        algorithm = token.algorithm
        if algorithm not in self.SUPPORTED_ALGORITHMS:
            return Result.failure(f"Unsupported JWS algorithm: {algorithm}")

        issuer = token.issuer
        if not isinstance(issuer, str) or not issuer:
            return Result.failure("JWT has no issuer to verify the signature against")

        try:
            did_document = self.did_resolver.resolve(issuer)
        except DIDResolutionError as e:
            log.debug("Issuer resolution failed for %s: %s", issuer, e)
            return Result.failure(f"Unable to resolve DID for issuer {issuer}: {e}")

        public_key = self._select_public_key(did_document, token.key_id)
        if public_key is None:
            return Result.failure(
                f"Failed getting verification method from DID Document of {issuer}"
            )
        if not public_key.is_valid_p256():
            return Result.failure(
                "Signature verification error: "
                f"Public key is not a valid P-256 EC key: {public_key}"
            )

        try:
            key = jwt.PyJWK(public_key.to_dict(), algorithm=algorithm)
            jwt.PyJWS().decode(
                token.token,
                key=key.key,
                algorithms=list(self.SUPPORTED_ALGORITHMS),
            )
        except jwt.InvalidSignatureError:
            return Result.failure("Invalid JWT signature")
        # Coordinates off the curve surface as ValueError from cryptography
        except (jwt.PyJWTError, ValueError) as e:
            return Result.failure(f"Signature verification error: {e}")

        return Result.success()

    def _select_public_key(
        self, did_document: DIDDocument, key_id: str | None
    ) -> PublicKeyJWK | None:
        """Pick the issuer key named by ``kid``, or the first JWK-bearing method."""
        if key_id:
            vm = did_document.get_verification_method(key_id)
            if vm is None:
                return None
            return vm.public_key_jwk

        for vm in did_document.verification_methods:
            if vm.public_key_jwk is not None:
                return vm.public_key_jwk
        return None
