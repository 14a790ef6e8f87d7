"""
Device Key Resolver

Maps a device ID to its PEM public key.

Resolution order:
1. Keys already cached by this resolver (no remote call once populated)
2. A JSON secret in AWS Secrets Manager: {"PI_USER_PUBLIC_KEY": "<base64 PEM>", ...}
3. Per-device environment variables with the same names (PI_USER_PUBLIC_KEY, ...)

All known devices are loaded together on first use, so the first signed
request after startup costs one Secrets Manager round-trip. Concurrent first
requests may each fetch; the result is the same and the last write wins.

Keys are never refreshed once cached: rotating a device key requires a
restart of the service.
"""

import asyncio
import json
import logging
import os
from typing import Dict, Iterable, List, Mapping, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from backend.core.signing.keys import decode_key

logger = logging.getLogger(__name__)


class SecretStore(Protocol):
    """Remote store returning a named secret as a JSON object."""

    def get_secret_json(self, name: str) -> Optional[Dict[str, object]]:
        ...


class SecretsManagerStore:
    """
    AWS Secrets Manager backed secret store.

    The boto3 client is created on first use. Errors are logged and reported
    as a missing secret; callers fall back to the environment.
    """

    def __init__(self, region_name: str, timeout_seconds: float = 5.0, client=None):
        self.region_name = region_name
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "secretsmanager",
                region_name=self.region_name,
                config=Config(
                    connect_timeout=self.timeout_seconds,
                    read_timeout=self.timeout_seconds,
                    retries={"max_attempts": 1, "mode": "standard"},
                ),
            )
        return self._client

    def get_secret_json(self, name: str) -> Optional[Dict[str, object]]:
        try:
            response = self.client.get_secret_value(SecretId=name)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to fetch secret '{name}' from Secrets Manager: {e}")
            return None

        secret_string = response.get("SecretString")
        if not secret_string:
            logger.warning(f"Secret '{name}' has no SecretString value")
            return None

        try:
            value = json.loads(secret_string)
        except json.JSONDecodeError as e:
            logger.error(f"Secret '{name}' is not valid JSON: {e.msg}")
            return None

        if not isinstance(value, dict):
            logger.error(f"Secret '{name}' is not a JSON object")
            return None
        return value


class DeviceKeyResolver:
    """
    Resolves and caches device public keys.

    One instance is created at startup and shared by every request.

    Example:
        >>> resolver = DeviceKeyResolver(["pi-user"], SecretsManagerStore("us-west-2"), "device-keys")
        >>> public_key_pem = await resolver.resolve("pi-user")
    """

    def __init__(
        self,
        known_devices: Iterable[str],
        secret_store: Optional[SecretStore] = None,
        secret_name: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.known_devices = tuple(known_devices)
        self._secret_store = secret_store
        self._secret_name = secret_name
        self._environ = os.environ if environ is None else environ
        self._keys: Dict[str, Optional[str]] = {}

    @staticmethod
    def secret_name_for(device_id: str) -> str:
        """Name of the secret/env var holding a device key: pi-user -> PI_USER_PUBLIC_KEY."""
        return f"{device_id.upper().replace('-', '_')}_PUBLIC_KEY"

    @property
    def is_populated(self) -> bool:
        """True once at least one device key has been resolved."""
        return any(key is not None for key in self._keys.values())

    @property
    def cached_devices(self) -> List[str]:
        """Devices with a usable key in the cache."""
        return [device for device, key in self._keys.items() if key is not None]

    async def resolve(self, device_id: str) -> Optional[str]:
        """
        Get the public key for a device.

        Args:
            device_id: Claimed device identity (x-device-id)

        Returns:
            PEM public key, or None for unknown devices and devices whose key
            is missing or undecodable. Never raises.
        """
        if device_id not in self.known_devices:
            return None

        if not self.is_populated:
            await asyncio.to_thread(self.load)

        return self._keys.get(device_id)

    def load(self) -> Dict[str, Optional[str]]:
        """
        Populate the cache for all known devices (blocking).

        Returns:
            Mapping of device ID to PEM public key (None when unavailable)
        """
        remote_keys = self._fetch_remote_keys()

        keys: Dict[str, Optional[str]] = {}
        sources: Dict[str, str] = {}
        for device_id in self.known_devices:
            name = self.secret_name_for(device_id)

            raw_key = remote_keys.get(name)
            source = "secrets-manager"
            if not isinstance(raw_key, str) or not raw_key:
                raw_key = self._environ.get(name)
                source = "environment"

            public_key = decode_key(raw_key)
            if raw_key and public_key is None:
                logger.error(f"Could not decode public key for device '{device_id}' ({name}, {source})")
            keys[device_id] = public_key
            if public_key is not None:
                sources[device_id] = source

        self._keys = keys

        loaded = ", ".join(f"{device} ({source})" for device, source in sources.items())
        missing = [device for device, key in keys.items() if key is None]
        logger.info(f"Device key cache loaded: {loaded or 'none'}")
        if missing:
            logger.warning(f"No public key available for devices: {', '.join(missing)}")

        return dict(keys)

    def _fetch_remote_keys(self) -> Dict[str, object]:
        """Fetch the device key map from the secret store, or {} if unavailable."""
        if self._secret_store is None or not self._secret_name:
            return {}

        try:
            secret = self._secret_store.get_secret_json(self._secret_name)
        except Exception as e:
            logger.error(f"Error fetching device keys from secret '{self._secret_name}': {e}")
            return {}

        if not secret:
            logger.warning(f"Secret '{self._secret_name}' returned no device keys, using environment")
            return {}
        return secret
