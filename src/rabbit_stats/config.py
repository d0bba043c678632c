import os
import ssl
from typing import Union

from pydantic import BaseModel


_TRUTHY = {"1", "true", "yes"}


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in _TRUTHY


# Fallbacks when a variable is unset
DEFAULT_MGMT_URL = "http://localhost:15672"
DEFAULT_USER = "guest"
DEFAULT_PASS = "guest"
DEFAULT_TIMEOUT = "10.0"
DEFAULT_SSL_VERIFY = "true"
DEFAULT_SSL_CA_PATH = ""
DEFAULT_RAISE_FOR_STATUS = "true"
DEFAULT_LOG_LEVEL = "INFO"

# Management API endpoint and credentials
RABBITMQ_MGMT_URL: str = os.getenv("RABBITMQ_MGMT_URL", DEFAULT_MGMT_URL)
RABBITMQ_USER: str = os.getenv("RABBITMQ_USER", DEFAULT_USER)
RABBITMQ_PASS: str = os.getenv("RABBITMQ_PASS", DEFAULT_PASS)

# HTTP transport
RABBITMQ_MGMT_TIMEOUT: float = float(os.getenv("RABBITMQ_MGMT_TIMEOUT", DEFAULT_TIMEOUT))
RABBITMQ_SSL_VERIFY: bool = _env_bool("RABBITMQ_SSL_VERIFY", DEFAULT_SSL_VERIFY)
RABBITMQ_SSL_CA_PATH: str = os.getenv("RABBITMQ_SSL_CA_PATH", DEFAULT_SSL_CA_PATH)
RABBITMQ_MGMT_RAISE_FOR_STATUS: bool = _env_bool("RABBITMQ_MGMT_RAISE_FOR_STATUS", DEFAULT_RAISE_FOR_STATUS)

LOG_LEVEL: str = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL)


class Settings(BaseModel):
    """Typed configuration for the management API client.

    Defaults are read from the environment when this module is imported. Use
    ``Settings.from_env()`` to pick up variables changed after import.

    Examples:
    - Point the client at a remote broker:
      ```bash
      export RABBITMQ_MGMT_URL=https://rabbit.internal:15671
      export RABBITMQ_USER=monitoring
      export RABBITMQ_PASS=secret
      ```
    - Trust a private CA:
      ```bash
      export RABBITMQ_SSL_CA_PATH=/etc/ssl/rabbit-ca.pem
      ```
    """
    mgmt_url: str = RABBITMQ_MGMT_URL
    user: str = RABBITMQ_USER
    password: str = RABBITMQ_PASS
    timeout: float = RABBITMQ_MGMT_TIMEOUT
    verify: bool = RABBITMQ_SSL_VERIFY
    ca_path: str = RABBITMQ_SSL_CA_PATH
    raise_for_status: bool = RABBITMQ_MGMT_RAISE_FOR_STATUS
    log_level: str = LOG_LEVEL

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mgmt_url=os.getenv("RABBITMQ_MGMT_URL", DEFAULT_MGMT_URL),
            user=os.getenv("RABBITMQ_USER", DEFAULT_USER),
            password=os.getenv("RABBITMQ_PASS", DEFAULT_PASS),
            timeout=float(os.getenv("RABBITMQ_MGMT_TIMEOUT", DEFAULT_TIMEOUT)),
            verify=_env_bool("RABBITMQ_SSL_VERIFY", DEFAULT_SSL_VERIFY),
            ca_path=os.getenv("RABBITMQ_SSL_CA_PATH", DEFAULT_SSL_CA_PATH),
            raise_for_status=_env_bool("RABBITMQ_MGMT_RAISE_FOR_STATUS", DEFAULT_RAISE_FOR_STATUS),
            log_level=os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL),
        )

    def ssl_verify(self) -> Union[bool, ssl.SSLContext]:
        """Value for httpx's ``verify`` argument.

        Returns an ``ssl.SSLContext`` trusting ``ca_path`` when one is set.
        Disabling verification is meant for dev brokers with self-signed
        certificates.
        """
        if not self.verify:
            return False
        if self.ca_path:
            return ssl.create_default_context(cafile=self.ca_path)
        return True
