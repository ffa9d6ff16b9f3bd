"""
Authenticated Vault client construction.

Two authentication methods are supported:
- Static token: VAULT_TOKEN holds a 26 character service token, set on
  the client directly with no network round trip
- AWS IAM: VAULT_TOKEN holds the ``aws-iam`` sentinel; the instance's AWS
  credentials sign an STS GetCallerIdentity request which Vault exchanges
  for a client token

Invariants:
    - A failed login never yields a client
    - The three AWS IAM failure sites (credential provider, login call,
      empty session) are logged separately and carry distinct reasons
    - Tokens are never logged
    - No retry; authentication failure is fatal to the run
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from typing import Any

import botocore.session
import hvac
from botocore.exceptions import BotoCoreError
from hvac.exceptions import VaultError
from requests.exceptions import RequestException

from ..config import ClusterConfig
from ..errors import AuthMethodError, ConnectionConfigError, InvalidCredentialError

logger = logging.getLogger(__name__)

# Length of a Vault service token
TOKEN_LENGTH = 26


def resolve_aws_credentials() -> Any:
    """Resolve AWS credentials through the botocore provider chain.

    Returns:
        Frozen credentials (access_key, secret_key, token), or None when no
        provider in the chain has credentials.
    """
    credentials = botocore.session.get_session().get_credentials()
    if credentials is None:
        return None
    return credentials.get_frozen_credentials()


class VaultAuthenticator:
    """Builds an hvac client and authenticates it.

    Attributes:
        config: Vault cluster configuration

    Example:
        >>> authenticator = VaultAuthenticator(ClusterConfig.from_env())
        >>> client = authenticator.connect()
    """

    def __init__(
        self,
        config: ClusterConfig,
        client_factory: Callable[..., hvac.Client] | None = None,
        credential_resolver: Callable[[], Any] | None = None,
    ) -> None:
        """Initialize the authenticator.

        Args:
            config: Vault cluster configuration
            client_factory: Callable building the hvac client (hvac.Client by default)
            credential_resolver: Callable returning AWS credentials for IAM login
        """
        self.config = config
        self._client_factory = client_factory or hvac.Client
        self._credential_resolver = credential_resolver or resolve_aws_credentials

    def connect(self) -> hvac.Client:
        """Build a client and authenticate it.

        Returns:
            Authenticated hvac client

        Raises:
            ConnectionConfigError: If TLS settings are invalid
            AuthMethodError: If AWS IAM login fails
            InvalidCredentialError: If the static token is malformed
        """
        client = self.build_client()
        return self.authenticate(client)

    def build_client(self) -> hvac.Client:
        """Build an unauthenticated client with TLS settings applied.

        Raises:
            ConnectionConfigError: If TLS settings are invalid
        """
        config = self.config
        verify = self._tls_verify()
        cert = self._client_cert()

        try:
            client = self._client_factory(
                url=config.address,
                verify=verify,
                cert=cert,
                namespace=config.namespace,
            )
        except (TypeError, ValueError) as e:
            logger.error(
                "Vault client failed to initialize",
                extra={"vault_addr": config.address, "error": str(e)},
            )
            raise ConnectionConfigError(
                f"Vault client failed to initialize: {e}", address=config.address
            ) from e

        logger.debug(
            "Vault client configured",
            extra={
                "vault_addr": config.address,
                "tls_skip_verify": config.insecure,
                "ca_cert": config.ca_cert,
                "mutual_tls": cert is not None,
            },
        )
        return client

    def authenticate(self, client: hvac.Client) -> hvac.Client:
        """Authenticate a client with the configured method.

        Args:
            client: Unauthenticated hvac client

        Returns:
            The same client, holding a session token

        Raises:
            AuthMethodError: If AWS IAM login fails
            InvalidCredentialError: If the static token is malformed
        """
        if self.config.uses_aws_iam:
            self._login_aws_iam(client)
        else:
            self._set_static_token(client)
        return client

    def _tls_verify(self) -> bool | str:
        if self.config.insecure:
            return False

        ca_cert = self.config.ca_cert
        if ca_cert is None:
            return True
        if not os.path.exists(ca_cert):
            logger.error(
                "Vault TLS configuration failed to initialize",
                extra={"ca_cert": ca_cert},
            )
            raise ConnectionConfigError(
                f"Vault TLS configuration failed: CA bundle {ca_cert} does not exist",
                address=self.config.address,
            )
        return ca_cert

    def _client_cert(self) -> tuple[str, str] | None:
        cert_path = self.config.client_cert
        key_path = self.config.client_key
        if cert_path is None and key_path is None:
            return None

        if cert_path is None or key_path is None:
            logger.error("Vault TLS configuration failed to initialize: incomplete cert pair")
            raise ConnectionConfigError(
                "Vault TLS configuration failed: VAULT_CLIENT_CERT and VAULT_CLIENT_KEY "
                "must be set together",
                address=self.config.address,
            )

        for path in (cert_path, key_path):
            if not os.path.exists(path):
                logger.error(
                    "Vault TLS configuration failed to initialize",
                    extra={"path": path},
                )
                raise ConnectionConfigError(
                    f"Vault TLS configuration failed: {path} does not exist",
                    address=self.config.address,
                )
        return cert_path, key_path

    def _set_static_token(self, client: hvac.Client) -> None:
        token = self.config.token
        if len(token) != TOKEN_LENGTH:
            logger.error(
                "The Vault token is invalid",
                extra={"token_length": len(token), "expected_length": TOKEN_LENGTH},
            )
            raise InvalidCredentialError(
                f"The Vault token is invalid: expected {TOKEN_LENGTH} characters, "
                f"got {len(token)}",
                length=len(token),
            )

        client.token = token
        logger.info("Authenticated to Vault with token")

    def _login_aws_iam(self, client: hvac.Client) -> None:
        config = self.config

        try:
            credentials = self._credential_resolver()
        except BotoCoreError as e:
            logger.error(
                "Unable to initialize AWS IAM authentication",
                extra={"error": str(e)},
            )
            raise AuthMethodError(
                f"Unable to initialize AWS IAM authentication: {e}",
                reason=AuthMethodError.PROVIDER_INIT,
                mount_point=config.aws_mount_point,
            ) from e
        if credentials is None:
            logger.error("Unable to initialize AWS IAM authentication: no AWS credentials found")
            raise AuthMethodError(
                "Unable to initialize AWS IAM authentication: no AWS credentials found",
                reason=AuthMethodError.PROVIDER_INIT,
                mount_point=config.aws_mount_point,
            )

        try:
            response = client.auth.aws.iam_login(
                credentials.access_key,
                credentials.secret_key,
                session_token=credentials.token,
                header_value=config.aws_header_value,
                role=config.aws_role,
                use_token=False,
                region=config.aws_region,
                mount_point=config.aws_mount_point,
            )
        except (VaultError, RequestException) as e:
            logger.error(
                "Unable to login to AWS IAM auth method",
                extra={"mount_point": config.aws_mount_point, "error": str(e)},
            )
            raise AuthMethodError(
                f"Unable to login to AWS IAM auth method: {e}",
                reason=AuthMethodError.LOGIN,
                mount_point=config.aws_mount_point,
            ) from e

        # hvac returns the raw Response when the body is not JSON (e.g. 204)
        if not isinstance(response, dict):
            response = {}
        auth_info = response.get("auth") or {}
        client_token = auth_info.get("client_token")
        if not client_token:
            logger.error(
                "No auth info was returned after login",
                extra={"mount_point": config.aws_mount_point},
            )
            raise AuthMethodError(
                "No auth info was returned after login",
                reason=AuthMethodError.EMPTY_SESSION,
                mount_point=config.aws_mount_point,
            )

        client.token = client_token
        logger.info(
            "Authenticated to Vault with AWS IAM",
            extra={
                "mount_point": config.aws_mount_point,
                "role": config.aws_role,
                "lease_duration": auth_info.get("lease_duration"),
            },
        )
