"""Tests for the Identity Hub credentials verifier."""

import base64
import logging
from unittest.mock import MagicMock

import pytest
import respx
from httpx import Response

from conftest import HUB_BASE_URL, ISSUER, SUBJECT, generate_verifiable_credential, sign_jwt

from hub_verifier import (
    Credential,
    CredentialEnvelopeVerifierRegistry,
    DIDDocument,
    IdentityHubCredentialsVerifier,
    ResponseStatus,
    Result,
    StatusResult,
    create_verifier,
)


@pytest.fixture
def hub_client():
    return MagicMock()


@pytest.fixture
def jwt_credentials_verifier():
    mock = MagicMock()
    mock.verify_claims.return_value = Result.success()
    mock.is_signed_by_issuer.return_value = Result.success()
    return mock


@pytest.fixture
def credentials_verifier(hub_client, jwt_credentials_verifier):
    return IdentityHubCredentialsVerifier(
        hub_client=hub_client,
        verifier_registry=CredentialEnvelopeVerifierRegistry.for_jwt(jwt_credentials_verifier),
    )


def publish(hub_client, *tokens):
    hub_client.get_verifiable_credentials.return_value = StatusResult.success(
        [t.encode() if isinstance(t, str) else t for t in tokens]
    )


def warnings(caplog):
    return [r for r in caplog.records if r.levelno == logging.WARNING]


class TestGetVerifiedCredentials:
    """Tests for batch verification."""

    def test_valid_credentials(
        self, credentials_verifier, hub_client, subject_did_document, credential_jwt
    ):
        vc = generate_verifiable_credential(region="eu")
        publish(hub_client, credential_jwt(vc))

        result = credentials_verifier.get_verified_credentials(subject_did_document)

        assert result.succeeded
        assert result.content == [
            Credential(
                id=vc["id"],
                issuer=ISSUER,
                subject=SUBJECT,
                claims={"region": "eu"},
                contexts=("https://www.w3.org/2018/credentials/v1",),
                types=("VerifiableCredential",),
                issuance_date="2025-01-01T00:00:00Z",
            )
        ]
        hub_client.get_verifiable_credentials.assert_called_once_with(HUB_BASE_URL)

    def test_all_valid_keeps_order(
        self, credentials_verifier, hub_client, subject_did_document, credential_jwt
    ):
        vcs = [generate_verifiable_credential() for _ in range(5)]
        publish(hub_client, *(credential_jwt(vc) for vc in vcs))

        result = credentials_verifier.get_verified_credentials(subject_did_document)

        assert [c.id for c in result.content] == [vc["id"] for vc in vcs]

    def test_hub_url_not_resolved(self, credentials_verifier, hub_client):
        result = credentials_verifier.get_verified_credentials(DIDDocument(id=SUBJECT))

        assert result.failed
        assert result.failure_messages == ("Failed getting Identity Hub URL",)
        hub_client.get_verifiable_credentials.assert_not_called()

    @pytest.mark.parametrize("status", [ResponseStatus.FATAL_ERROR, ResponseStatus.ERROR_RETRY])
    def test_hub_call_fails(
        self, credentials_verifier, hub_client, subject_did_document, status
    ):
        hub_client.get_verifiable_credentials.return_value = StatusResult.failure(
            "IdentityHub error response code: 500", status=status
        )

        result = credentials_verifier.get_verified_credentials(subject_did_document)

        assert result.failed
        assert result.failure_messages == ("IdentityHub error response code: 500",)

    def test_no_credentials_published(
        self, credentials_verifier, hub_client, subject_did_document, caplog
    ):
        publish(hub_client)

        result = credentials_verifier.get_verified_credentials(subject_did_document)

        assert result.succeeded
        assert result.content == []
        assert warnings(caplog) == []

    def test_wrong_format_is_skipped(
        self, credentials_verifier, hub_client, subject_did_document, credential_jwt, caplog
    ):
        valid = [credential_jwt(), credential_jwt()]
        publish(hub_client, valid[0], b"not-a-jwt", valid[1])

        with caplog.at_level(logging.WARNING):
            result = credentials_verifier.get_verified_credentials(subject_did_document)

        assert result.succeeded
        assert len(result.content) == 2
        assert len(warnings(caplog)) == 1
        assert "Failed to decode JWT" in warnings(caplog)[0].getMessage()

    def test_signed_by_wrong_issuer_is_skipped(
        self, credentials_verifier, hub_client, jwt_credentials_verifier,
        subject_did_document, credential_jwt, caplog,
    ):
        jwt_credentials_verifier.is_signed_by_issuer.return_value = Result.failure(
            "Invalid JWT signature"
        )
        publish(hub_client, credential_jwt())

        with caplog.at_level(logging.WARNING):
            result = credentials_verifier.get_verified_credentials(subject_did_document)

        assert result.succeeded
        assert result.content == []
        assert len(warnings(caplog)) == 1

    def test_invalid_claims_are_skipped(
        self, credentials_verifier, hub_client, jwt_credentials_verifier,
        subject_did_document, credential_jwt, caplog,
    ):
        jwt_credentials_verifier.verify_claims.return_value = Result.failure("bad claims")
        publish(hub_client, credential_jwt(), credential_jwt())

        with caplog.at_level(logging.WARNING):
            result = credentials_verifier.get_verified_credentials(subject_did_document)

        assert result.content == []
        assert len(warnings(caplog)) == 2
        jwt_credentials_verifier.is_signed_by_issuer.assert_not_called()

    def test_missing_id_is_skipped(
        self, credentials_verifier, hub_client, subject_did_document, credential_jwt, caplog
    ):
        publish(hub_client, credential_jwt({"lorem": "ipsum"}))

        with caplog.at_level(logging.WARNING):
            result = credentials_verifier.get_verified_credentials(subject_did_document)

        assert result.succeeded
        assert result.content == []
        assert len(warnings(caplog)) == 1
        assert "'id'" in warnings(caplog)[0].getMessage()

    def test_nothing_published_looks_like_nothing_verified(
        self, credentials_verifier, hub_client, jwt_credentials_verifier,
        subject_did_document, credential_jwt,
    ):
        # Both cases yield an empty success; only the log tells them apart.
        publish(hub_client)
        nothing_published = credentials_verifier.get_verified_credentials(subject_did_document)

        jwt_credentials_verifier.verify_claims.return_value = Result.failure("bad claims")
        publish(hub_client, credential_jwt())
        nothing_verified = credentials_verifier.get_verified_credentials(subject_did_document)

        assert nothing_published == nothing_verified

    def test_verification_is_repeatable(
        self, credentials_verifier, hub_client, subject_did_document, credential_jwt
    ):
        publish(hub_client, credential_jwt(), b"garbage")

        first = credentials_verifier.get_verified_credentials(subject_did_document)
        second = credentials_verifier.get_verified_credentials(subject_did_document)

        assert first == second

    def test_thread_pool_keeps_order_and_warnings(
        self, hub_client, jwt_credentials_verifier, subject_did_document,
        credential_jwt, caplog,
    ):
        verifier = IdentityHubCredentialsVerifier(
            hub_client=hub_client,
            verifier_registry=CredentialEnvelopeVerifierRegistry.for_jwt(jwt_credentials_verifier),
            max_workers=4,
        )
        vcs = [generate_verifiable_credential() for _ in range(10)]
        tokens = [credential_jwt(vc) for vc in vcs]
        publish(hub_client, *tokens[:5], b"bad-1", *tokens[5:], b"bad-2")

        with caplog.at_level(logging.WARNING):
            result = verifier.get_verified_credentials(subject_did_document)

        assert [c.id for c in result.content] == [vc["id"] for vc in vcs]
        assert len(warnings(caplog)) == 2

    def test_invalid_max_workers(self, hub_client, jwt_credentials_verifier):
        with pytest.raises(ValueError):
            IdentityHubCredentialsVerifier(
                hub_client=hub_client,
                verifier_registry=CredentialEnvelopeVerifierRegistry(),
                max_workers=0,
            )


class TestCreateVerifier:
    """End to end over mocked HTTP: hub query plus issuer did:web resolution."""

    @respx.mock
    def test_verify_published_credentials(
        self, subject_did_document, issuer_did_json, credential_jwt, ec_key_pair, caplog
    ):
        private_key, _ = ec_key_pair
        vc = generate_verifiable_credential(region="eu")
        foreign = sign_jwt(
            {"iss": ISSUER, "sub": "did:web:mallory.com", "vc": generate_verifiable_credential()},
            private_key,
        )
        entries = [credential_jwt(vc), foreign]
        respx.post(HUB_BASE_URL).mock(return_value=Response(200, json={
            "replies": [{
                "status": {"code": 200, "detail": "OK"},
                "entries": [base64.b64encode(e.encode()).decode() for e in entries],
            }],
        }))
        respx.get("https://issuer.example.com/.well-known/did.json").mock(
            return_value=Response(200, json=issuer_did_json)
        )

        with caplog.at_level(logging.WARNING):
            result = create_verifier().get_verified_credentials(subject_did_document)

        assert result.succeeded
        assert [c.id for c in result.content] == [vc["id"]]
        assert len(warnings(caplog)) == 1
        assert "does not match expected subject" in warnings(caplog)[0].getMessage()


def mock_hub(*tokens):
    respx.post(HUB_BASE_URL).mock(return_value=Response(200, json={
        "replies": [{
            "status": {"code": 200, "detail": "OK"},
            "entries": [base64.b64encode(t.encode()).decode() for t in tokens],
        }],
    }))


class TestHostileCredentialsAreIsolated:
    """One malformed credential is rejected without failing the batch."""

    @pytest.fixture(autouse=True)
    def issuer_did(self, issuer_did_json):
        with respx.mock:
            respx.get("https://issuer.example.com/.well-known/did.json").mock(
                return_value=Response(200, json=issuer_did_json)
            )
            yield

    def assert_only_valid_kept(self, subject_did_document, valid_vc, caplog):
        with caplog.at_level(logging.WARNING):
            result = create_verifier().get_verified_credentials(subject_did_document)

        assert result.succeeded
        assert [c.id for c in result.content] == [valid_vc["id"]]
        assert len(warnings(caplog)) == 1

    @pytest.mark.parametrize("header", [
        {"alg": ["ES256"]},
        {"alg": {"name": "ES256"}},
        {"kid": 1},
        {"kid": [f"{ISSUER}#key-1"]},
    ])
    def test_header_parameter_of_wrong_type(
        self, subject_did_document, credential_jwt, ec_key_pair, caplog, header
    ):
        private_key, _ = ec_key_pair
        vc = generate_verifiable_credential()
        hostile = sign_jwt(
            {"iss": ISSUER, "sub": SUBJECT, "vc": generate_verifiable_credential()},
            private_key,
            header,
        )
        mock_hub(credential_jwt(vc), hostile)

        self.assert_only_valid_kept(subject_did_document, vc, caplog)
        assert "must be a string" in warnings(caplog)[0].getMessage()

    @pytest.mark.parametrize("exp", [[1], {"seconds": 1}, "never"])
    def test_time_claim_of_wrong_type(
        self, subject_did_document, credential_jwt, caplog, exp
    ):
        vc = generate_verifiable_credential()
        mock_hub(credential_jwt(vc), credential_jwt(exp=exp))

        self.assert_only_valid_kept(subject_did_document, vc, caplog)

    @pytest.mark.parametrize("verification_method", [
        "not-an-object",
        {"id": "did:web:broken.example.com#key-1", "publicKeyJwk": "not-an-object"},
        {"id": "did:web:broken.example.com#key-1", "publicKeyJwk": {"kty": "EC", "x": 1}},
    ])
    def test_malformed_issuer_document(
        self, subject_did_document, credential_jwt, ec_key_pair, caplog, verification_method
    ):
        private_key, _ = ec_key_pair
        broken_issuer = "did:web:broken.example.com"
        respx.get("https://broken.example.com/.well-known/did.json").mock(
            return_value=Response(200, json={
                "id": broken_issuer,
                "verificationMethod": [verification_method],
            })
        )
        vc = generate_verifiable_credential()
        hostile = sign_jwt(
            {"iss": broken_issuer, "sub": SUBJECT, "vc": generate_verifiable_credential()},
            private_key,
        )
        mock_hub(credential_jwt(vc), hostile)

        self.assert_only_valid_kept(subject_did_document, vc, caplog)
        assert "Unable to resolve DID for issuer" in warnings(caplog)[0].getMessage()
