"""Secure transport: SSH connection, authentication and SFTP subsystem via paramiko."""

import logging

import paramiko
from paramiko import SFTPClient, SSHClient
from paramiko.pkey import UnknownKeyType

from ..config.models import ConnectionConfig, CredentialMode
from .errors import AuthError, ConnectError, SubsystemError


logger = logging.getLogger(__name__)


class SecureTransport:
    """Opens authenticated SSH clients and SFTP subsystems for a session."""

    def open(self, config: ConnectionConfig) -> SSHClient:
        """
        Connect to ``config.host:config.port`` and authenticate.

        Args:
            config: Connection configuration

        Returns:
            SSHClient: Connected and authenticated SSH client

        Raises:
            ConnectError: If the host is unreachable or its host key is rejected
            AuthError: If no usable credentials exist or the server rejects them
        """
        mode = config.credential_mode
        if mode is None:
            raise AuthError(f"No credentials configured for user {config.username}", config.username)

        connect_kwargs = {
            'hostname': config.host,
            'port': config.port,
            'username': config.username,
            'timeout': config.timeout,
            'banner_timeout': config.timeout,
            'auth_timeout': config.timeout,
            'allow_agent': False,
            'look_for_keys': False,
        }
        if mode is CredentialMode.KEY:
            connect_kwargs['pkey'] = self._load_private_key(config)
        else:
            connect_kwargs['password'] = config.password

        client = SSHClient()
        try:
            self._configure_host_keys(client, config)
            logger.debug(f"Opening SSH transport to {config.host}:{config.port} ({mode.value} auth)")
            client.connect(**connect_kwargs)
        except paramiko.AuthenticationException as e:
            client.close()
            if mode is CredentialMode.KEY:
                message = f"Could not authenticate with given keys or passphrase for user {config.username}"
            else:
                message = f"Can't authenticate with user {config.username}"
            raise AuthError(message, config.username) from e
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise ConnectError(f"Can't connect to {config.host}:{config.port}: {e}") from e

        return client

    def open_subsystem(self, client: SSHClient) -> SFTPClient:
        """
        Start the SFTP subsystem on an authenticated client.

        Raises:
            SubsystemError: If the server refuses or the channel fails
        """
        try:
            sftp = client.open_sftp()
        except (paramiko.SSHException, OSError) as e:
            raise SubsystemError() from e

        if sftp is None:
            raise SubsystemError()
        return sftp

    def _configure_host_keys(self, client: SSHClient, config: ConnectionConfig):
        if config.known_hosts_file:
            client.load_host_keys(config.known_hosts_file)
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    def _load_private_key(self, config: ConnectionConfig) -> paramiko.PKey:
        """Load the private key and check it against the configured public key."""
        message = f"Could not authenticate with given keys or passphrase for user {config.username}"
        passphrase = config.passphrase.encode('utf-8') if config.passphrase else None

        try:
            pkey = paramiko.PKey.from_path(config.private_key_path, passphrase)
        except (paramiko.SSHException, UnknownKeyType, OSError, ValueError) as e:
            raise AuthError(message, config.username) from e
        except TypeError as e:
            # cryptography's signal for an encrypted key loaded without a password
            if passphrase is not None:
                raise
            raise AuthError(message, config.username) from e

        try:
            with open(config.public_key_path, 'r', encoding='utf-8') as f:
                fields = f.read().split()
        except OSError as e:
            raise AuthError(message, config.username) from e

        if len(fields) < 2 or fields[1] != pkey.get_base64():
            raise AuthError(
                f"Public key {config.public_key_path} does not match private key "
                f"{config.private_key_path} for user {config.username}",
                config.username
            )

        return pkey
