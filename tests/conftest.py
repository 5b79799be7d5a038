"""Pytest configuration: adds src/ to sys.path and provides shared fixtures."""

import datetime
import os
import sys
from unittest.mock import MagicMock

import pytest

# Add src/ to Python path so tests can import from sharepoint_import
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from cryptography import x509  # noqa: E402
from cryptography.hazmat.primitives import hashes, serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import ec, rsa  # noqa: E402
from cryptography.hazmat.primitives.serialization import pkcs12  # noqa: E402
from cryptography.x509.oid import NameOID  # noqa: E402

PFX_PASSWORD = "import-secret"


def make_response(status_code=200, json_data=None, text=None, headers=None):
    """Return a MagicMock shaped like a requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    if json_data is None:
        response.json.side_effect = ValueError("No JSON body")
    else:
        response.json.return_value = json_data
    response.text = text if text is not None else (str(json_data) if json_data is not None else "")
    return response


def _self_signed(key, common_name="sharepoint-import-test"):
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def certificate(rsa_key):
    return _self_signed(rsa_key)


@pytest.fixture(scope="session")
def pfx_bundle(rsa_key, certificate):
    """Password protected PKCS#12 bundle holding the RSA key and its certificate."""
    return pkcs12.serialize_key_and_certificates(
        b"sharepoint-import", rsa_key, certificate, None,
        serialization.BestAvailableEncryption(PFX_PASSWORD.encode()),
    )


@pytest.fixture(scope="session")
def pfx_without_key(certificate):
    return pkcs12.serialize_key_and_certificates(
        b"cert-only", None, certificate, None,
        serialization.BestAvailableEncryption(PFX_PASSWORD.encode()),
    )


@pytest.fixture(scope="session")
def pfx_with_ec_key():
    key = ec.generate_private_key(ec.SECP256R1())
    return pkcs12.serialize_key_and_certificates(
        b"ec", key, _self_signed(key), None,
        serialization.BestAvailableEncryption(PFX_PASSWORD.encode()),
    )


@pytest.fixture(autouse=True)
def _no_debug_env(monkeypatch):
    """Keep debug output off unless a test turns it on."""
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.delenv("DEBUG_METADATA", raising=False)
