# -*- coding: utf-8 -*-
"""
Microsoft authentication module for SharePoint import.

This module handles Azure AD authentication with a certificate credential:
the PFX bundle is opened in-process, its RSA private key signs a client
assertion (RS256 JWT), and the assertion is exchanged for a Graph access
token with the OAuth 2.0 client credentials grant.
"""

import base64
import binascii
import hashlib
import time
import uuid

import jwt
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from .errors import AuthError, CredentialError
from .models import AccessToken, SignedAssertion
from .utils import base64url_encode, is_debug_enabled

DEFAULT_LOGIN_ENDPOINT = 'login.microsoftonline.com'
DEFAULT_GRAPH_ENDPOINT = 'graph.microsoft.com'
CLIENT_ASSERTION_TYPE = 'urn:ietf:params:oauth:client-assertion-type:jwt-bearer'

# Provider ceiling for the token lifetime unless the caller extends it
DEFAULT_MAX_LIFETIME = 3600


def decode_certificate_bundle(base64_bundle):
    """
    Decode a base64 encoded PFX bundle (as stored in a repository secret).

    Raises:
        CredentialError: If the value is empty or not valid base64
    """
    if not base64_bundle:
        raise CredentialError("Certificate bundle is empty")
    try:
        return base64.b64decode(''.join(base64_bundle.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise CredentialError(f"Certificate bundle is not valid base64: {e}") from e


def load_private_key(bundle_bytes, password):
    """
    Extract the RSA private key (and certificate, if any) from a PKCS#12 bundle.

    Args:
        bundle_bytes (bytes): Raw PFX/PKCS#12 bytes
        password (str | bytes | None): Bundle password

    Returns:
        tuple: (RSAPrivateKey, Certificate or None)

    Raises:
        CredentialError: Wrong password, corrupt bundle, missing or non-RSA key
    """
    if isinstance(password, str):
        password = password.encode('utf-8')
    try:
        private_key, certificate, _ = pkcs12.load_key_and_certificates(bundle_bytes, password or None)
    except (ValueError, TypeError) as e:
        raise CredentialError(f"Could not open certificate bundle (wrong password or corrupt PFX): {e}") from e

    if private_key is None:
        raise CredentialError("No private key found in PFX.")
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise CredentialError(f"PFX private key is {type(private_key).__name__}, RS256 requires an RSA key")

    if is_debug_enabled():
        print(f"[DEBUG] Private key extracted successfully and has length of {private_key.key_size} bits.")
    return private_key, certificate


def certificate_thumbprint(certificate):
    """Return the base64url SHA-1 thumbprint (x5t) of a certificate."""
    der = certificate.public_bytes(serialization.Encoding.DER)
    return base64url_encode(hashlib.sha1(der).digest())


def token_endpoint(tenant_id, login_endpoint=DEFAULT_LOGIN_ENDPOINT):
    return f"https://{login_endpoint}/{tenant_id}/oauth2/v2.0/token"


def assertion_audience(tenant_id, login_endpoint=DEFAULT_LOGIN_ENDPOINT):
    return f"https://{login_endpoint}/{tenant_id}/v2.0"


def validate_lifetime(lifetime, max_lifetime=DEFAULT_MAX_LIFETIME):
    """
    Check a requested token lifetime.

    Raises:
        CredentialError: If lifetime is not in (0, max_lifetime]
    """
    try:
        lifetime = int(lifetime)
    except (TypeError, ValueError) as e:
        raise CredentialError(f"Token lifetime must be an integer number of seconds: {lifetime!r}") from e
    if lifetime <= 0:
        raise CredentialError(f"Token lifetime must be positive, got {lifetime}")
    if lifetime > max_lifetime:
        raise CredentialError(f"Token lifetime {lifetime}s exceeds the maximum of {max_lifetime}s")
    return lifetime


def sign_client_assertion(bundle_bytes, password, thumbprint, client_id, tenant_id,
                          lifetime=3600, max_lifetime=DEFAULT_MAX_LIFETIME,
                          login_endpoint=DEFAULT_LOGIN_ENDPOINT, now=None):
    """
    Build and sign a client assertion JWT from a password protected PFX bundle.

    Args:
        bundle_bytes (bytes): PFX/PKCS#12 bundle
        password (str): Bundle password
        thumbprint (str): Base64url certificate thumbprint for the x5t header;
            computed from the bundle's certificate when empty
        client_id (str): Application (client) ID, used as iss and sub
        tenant_id (str): Azure AD tenant ID
        lifetime (int): Assertion validity in seconds (exp = nbf + lifetime)
        max_lifetime (int): Upper bound accepted for lifetime
        login_endpoint (str): Azure AD login host
        now (int): Override for the issue time (seconds since epoch)

    Returns:
        SignedAssertion: header, payload, signature and compact form

    Raises:
        CredentialError: If the bundle cannot be opened or has no RSA key

    Note:
        jti is a fresh UUID on every call.
    """
    lifetime = validate_lifetime(lifetime, max_lifetime)
    private_key, certificate = load_private_key(bundle_bytes, password)

    if not thumbprint:
        if certificate is None:
            raise CredentialError("No thumbprint provided and no certificate found in PFX.")
        thumbprint = certificate_thumbprint(certificate)

    issued_at = int(time.time()) if now is None else int(now)
    payload = {
        'aud': assertion_audience(tenant_id, login_endpoint),
        'iss': client_id,
        'sub': client_id,
        'jti': str(uuid.uuid4()),
        'nbf': issued_at,
        'exp': issued_at + lifetime,
    }
    header = {'alg': 'RS256', 'typ': 'JWT', 'x5t': thumbprint}

    try:
        encoded = jwt.encode(payload, private_key, algorithm='RS256', headers={'x5t': thumbprint})
    except (ValueError, TypeError, jwt.PyJWTError) as e:
        raise CredentialError(f"Failed to sign client assertion: {e}") from e

    signature = encoded.rsplit('.', 1)[1]
    print("[✓] Client assertion has been signed.")
    return SignedAssertion(header, payload, signature, encoded)


def _print_auth_troubleshooting(status_code, error_code, error_desc, tenant_id, login_endpoint):
    """Print user-friendly hints for the common AADSTS failures."""
    print("[!] ========================================")
    print("[!] AUTHENTICATION FAILED")
    print("[!] ========================================")

    if 'AADSTS700027' in error_desc or 'AADSTS700024' in error_desc:
        print("[!] Error: Client assertion rejected")
        print("[!]   1. Verify the certificate is uploaded to the app registration")
        print("[!]   2. Verify the thumbprint matches that certificate")
        print("[!]   3. Check the system clock (nbf/exp are validated)")
    elif error_code == 'unauthorized_client' or 'AADSTS700016' in error_desc:
        print("[!] Error: Application not found or not authorized in this tenant")
        print(f"[!]   1. Verify CLIENT_ID and TENANT_ID ({tenant_id})")
        print("[!]   2. Grant admin consent for Sites.ReadWrite.All")
    elif error_code == 'invalid_scope' or 'AADSTS70011' in error_desc:
        print("[!] Error: Invalid scope requested")
        print("[!]   1. For commercial cloud, use graph.microsoft.com")
        print("[!]   2. For GovCloud, use graph.microsoft.us")
    elif error_code == 'invalid_request':
        print("[!] Error: Invalid authentication request")
        print(f"[!]   1. Verify login endpoint is correct: {login_endpoint}")
    else:
        print(f"[!] Error: {error_code or status_code}")

    print(f"[!] Technical details: {error_desc}")
    print("[!] ========================================")


def exchange_assertion_for_token(assertion, client_id, tenant_id, lifetime=3600,
                                 login_endpoint=DEFAULT_LOGIN_ENDPOINT,
                                 graph_endpoint=DEFAULT_GRAPH_ENDPOINT, session=None):
    """
    Exchange a signed client assertion for a Graph bearer token.

    Performs a single form-encoded POST of the client credentials grant.
    No retry: a malformed assertion or an expired certificate will not
    succeed the second time.

    Args:
        assertion (SignedAssertion | str): Signed client assertion
        client_id (str): Application (client) ID
        tenant_id (str): Azure AD tenant ID
        lifetime (int): Requested lifetime, used for the token's implicit expiry
        login_endpoint (str): Azure AD login host
        graph_endpoint (str): Graph host the token is scoped to
        session (requests.Session): Optional session, injected by tests

    Returns:
        AccessToken: Bearer token; its claims are not interpreted

    Raises:
        AuthError: Non-2xx response (status and body verbatim), or no access_token
    """
    http = session or requests
    data = {
        'grant_type': 'client_credentials',
        'client_id': client_id,
        'client_assertion_type': CLIENT_ASSERTION_TYPE,
        'client_assertion': str(assertion),
        'scope': f"https://{graph_endpoint}/.default",
    }
    issued_at = time.time()
    try:
        response = http.post(
            token_endpoint(tenant_id, login_endpoint),
            data=data,
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            timeout=(10, 60),
        )
    except requests.exceptions.RequestException as e:
        raise AuthError(f"Token request failed: {str(e)[:200]}") from e

    if not 200 <= response.status_code < 300:
        body = response.text
        try:
            details = response.json()
        except ValueError:
            details = {}
        _print_auth_troubleshooting(
            response.status_code, details.get('error', ''), details.get('error_description', body),
            tenant_id, login_endpoint
        )
        raise AuthError(
            f"Failed to fetch token: {response.status_code} {body}",
            status_code=response.status_code, body=body
        )

    token = response.json().get('access_token')
    if not token:
        raise AuthError("Token response did not contain an access_token",
                        status_code=response.status_code, body=response.text)

    print(f"[✓] Access token acquired (valid for {int(lifetime)} seconds).")
    return AccessToken(value=token, expires_at=issued_at + int(lifetime))


def acquire_token(credential, max_lifetime=DEFAULT_MAX_LIFETIME,
                  login_endpoint=DEFAULT_LOGIN_ENDPOINT,
                  graph_endpoint=DEFAULT_GRAPH_ENDPOINT, session=None):
    """
    Sign a client assertion with the credential and exchange it for a token.

    Args:
        credential (Credential): Certificate credential and requested lifetime
        max_lifetime (int): Upper bound accepted for the lifetime

    Returns:
        AccessToken: Bearer token

    Raises:
        CredentialError: Bundle problems (no network call is made)
        AuthError: Token endpoint rejection
    """
    print(f"[*] Getting token for {credential.tenant_id} : {credential.client_id}. "
          f"Expecting {credential.lifetime} seconds.")
    assertion = sign_client_assertion(
        credential.certificate, credential.password, credential.thumbprint,
        credential.client_id, credential.tenant_id,
        lifetime=credential.lifetime, max_lifetime=max_lifetime, login_endpoint=login_endpoint
    )
    return exchange_assertion_for_token(
        assertion, credential.client_id, credential.tenant_id, lifetime=credential.lifetime,
        login_endpoint=login_endpoint, graph_endpoint=graph_endpoint, session=session
    )
