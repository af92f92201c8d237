import boto3
import pytest
from botocore.stub import Stubber

from kmsenv.config import GatewayConfig
from kmsenv.errors import ConfigError, DecryptionError, EncryptionError
from kmsenv.gateway import KmsGateway, LocalGateway, create_gateway


# ---------------------------------------------------------------------------
# Local backend
# ---------------------------------------------------------------------------


@pytest.fixture
def local():
    return LocalGateway.from_config(GatewayConfig(backend="local", local_key="correct horse"))


def test_local_round_trip(local):
    blob = local.encrypt("key-123", "s3cr3t ünïcode")

    assert isinstance(blob, bytes)
    assert b"s3cr3t" not in blob
    assert local.decrypt(blob) == "s3cr3t ünïcode"


def test_local_uses_fresh_nonce_per_value(local):
    assert local.encrypt("key-123", "same") != local.encrypt("key-123", "same")


def test_local_wrong_secret_fails(local):
    blob = local.encrypt("key-123", "secret")
    other = LocalGateway.from_config(GatewayConfig(backend="local", local_key="battery staple"))

    with pytest.raises(DecryptionError):
        other.decrypt(blob)


def test_local_tampered_key_id_fails(local):
    blob = bytearray(local.encrypt("key-123", "secret"))
    blob[2] ^= 0x01  # first byte of the key id

    with pytest.raises(DecryptionError):
        local.decrypt(bytes(blob))


@pytest.mark.parametrize("blob", [b"", b"\x00", b"\x00\x03abc" + b"\x00" * 5])
def test_local_truncated_ciphertext_fails(local, blob):
    with pytest.raises(DecryptionError, match="truncated"):
        local.decrypt(blob)


def test_local_requires_secret():
    with pytest.raises(ConfigError, match="ENCRYPTION_KEY"):
        LocalGateway.from_config(GatewayConfig(backend="local"))


# ---------------------------------------------------------------------------
# AWS KMS backend
# ---------------------------------------------------------------------------


@pytest.fixture
def kms_client():
    return boto3.client(
        "kms",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def test_kms_encrypt(kms_client):
    with Stubber(kms_client) as stubber:
        stubber.add_response(
            "encrypt",
            {"CiphertextBlob": b"blob", "KeyId": "key-123"},
            {"KeyId": "key-123", "Plaintext": b"secret"},
        )

        assert KmsGateway(kms_client).encrypt("key-123", "secret") == b"blob"
        stubber.assert_no_pending_responses()


def test_kms_decrypt(kms_client):
    with Stubber(kms_client) as stubber:
        stubber.add_response(
            "decrypt",
            {"Plaintext": b"secret", "KeyId": "key-123"},
            {"CiphertextBlob": b"blob"},
        )

        assert KmsGateway(kms_client).decrypt(b"blob") == "secret"


def test_kms_encrypt_error_is_wrapped(kms_client):
    with Stubber(kms_client) as stubber:
        stubber.add_client_error(
            "encrypt",
            service_error_code="NotFoundException",
            service_message="Key 'alias/missing' does not exist",
        )

        with pytest.raises(EncryptionError, match="NotFoundException") as exc_info:
            KmsGateway(kms_client).encrypt("alias/missing", "secret")

    assert exc_info.value.__cause__ is not None


def test_kms_decrypt_error_is_wrapped(kms_client):
    with Stubber(kms_client) as stubber:
        stubber.add_client_error(
            "decrypt",
            service_error_code="InvalidCiphertextException",
            service_message="",
        )

        with pytest.raises(DecryptionError, match="InvalidCiphertextException"):
            KmsGateway(kms_client).decrypt(b"garbage")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def test_create_gateway_kms_uses_explicit_settings(isolated_env):
    config = GatewayConfig(
        region="eu-central-1",
        access_key_id="AKIATEST",
        secret_access_key="secret",
        endpoint_url="http://localhost:4566",
    )

    gateway = create_gateway(config)

    assert isinstance(gateway, KmsGateway)
    assert gateway.client.meta.region_name == "eu-central-1"
    assert gateway.client.meta.endpoint_url == "http://localhost:4566"


def test_create_gateway_unknown_profile_is_config_error(tmp_path, monkeypatch):
    monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "config"))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "credentials"))

    with pytest.raises(ConfigError):
        create_gateway(GatewayConfig(profile="does-not-exist", region="us-east-1"))


def test_create_gateway_local():
    gateway = create_gateway(GatewayConfig(backend="local", local_key="k"))

    assert isinstance(gateway, LocalGateway)


def test_create_gateway_unknown_backend():
    with pytest.raises(ConfigError):
        create_gateway(GatewayConfig(backend="vault"))
