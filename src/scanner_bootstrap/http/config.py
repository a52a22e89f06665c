"""
HTTP configuration loaded from bootstrap properties.
"""

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import structlog

from ..errors import ConfigurationError
from ..properties import (
    API_BASE_URL,
    CONNECT_TIMEOUT,
    HOST_URL,
    PROXY_HOST,
    PROXY_PASSWORD,
    PROXY_PORT,
    PROXY_USER,
    READ_TIMEOUT_SEC_DEPRECATED,
    RESPONSE_TIMEOUT,
    SCANNER_APP,
    SCANNER_APP_VERSION,
    SOCKET_TIMEOUT,
    SONAR_LOGIN,
    SONAR_PASSWORD,
    SONAR_TOKEN,
)

DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_SOCKET_TIMEOUT = 60.0
DEFAULT_RESPONSE_TIMEOUT = 0.0  # no limit
DEFAULT_PROXY_PORT = 80

# Sub-second timeouts (used in tests) are written as ISO-8601 durations
_ISO_SECONDS = re.compile(r"^PT(?:(\d+(?:\.\d+)?)S)$", re.IGNORECASE)


@dataclass
class HttpConfig:
    """Settings of the scanner HTTP client"""
    web_api_base_url: str
    rest_api_base_url: str
    user_agent: str
    token: Optional[str] = None
    login: Optional[str] = None
    password: Optional[str] = None
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    socket_timeout: float = DEFAULT_SOCKET_TIMEOUT
    response_timeout: float = DEFAULT_RESPONSE_TIMEOUT
    proxy_url: Optional[str] = None
    proxy_user: Optional[str] = None
    proxy_password: Optional[str] = None

    @classmethod
    def from_properties(cls, properties: Mapping[str, str], logger: Optional[Any] = None) -> "HttpConfig":
        """
        Build the configuration from bootstrap properties.

        Args:
            properties: Bootstrap properties (host and API URLs already resolved)
            logger: structlog logger (module logger if None)

        Raises:
            ConfigurationError: If a timeout or the proxy port is not a number
        """
        logger = logger or structlog.get_logger(__name__)

        proxy_url = None
        proxy_host = (properties.get(PROXY_HOST) or "").strip()
        if proxy_host:
            proxy_port = DEFAULT_PROXY_PORT
            if PROXY_PORT in properties:
                proxy_port = _parse_int(properties[PROXY_PORT], PROXY_PORT)
            proxy_url = f"http://{proxy_host}:{proxy_port}"

        return cls(
            web_api_base_url=(properties.get(HOST_URL) or "").rstrip("/"),
            rest_api_base_url=(properties.get(API_BASE_URL) or "").rstrip("/"),
            user_agent=f"{properties.get(SCANNER_APP)}/{properties.get(SCANNER_APP_VERSION)}",
            token=properties.get(SONAR_TOKEN),
            login=properties.get(SONAR_LOGIN),
            password=properties.get(SONAR_PASSWORD),
            connect_timeout=_load_duration(properties, CONNECT_TIMEOUT, None, DEFAULT_CONNECT_TIMEOUT, logger),
            socket_timeout=_load_duration(
                properties, SOCKET_TIMEOUT, READ_TIMEOUT_SEC_DEPRECATED, DEFAULT_SOCKET_TIMEOUT, logger
            ),
            response_timeout=_load_duration(properties, RESPONSE_TIMEOUT, None, DEFAULT_RESPONSE_TIMEOUT, logger),
            proxy_url=proxy_url,
            proxy_user=properties.get(PROXY_USER),
            proxy_password=properties.get(PROXY_PASSWORD),
        )


def _load_duration(
    properties: Mapping[str, str],
    key: str,
    deprecated_key: Optional[str],
    default: float,
    logger: Any,
) -> float:
    if key in properties:
        return parse_duration(properties[key], key)
    if deprecated_key is not None and deprecated_key in properties:
        logger.warning(
            "deprecated_property",
            property=deprecated_key,
            replacement=key,
            message=f"Property {deprecated_key} is deprecated and will be removed in a future version. "
                    f"Please use {key} instead.",
        )
        return parse_duration(properties[deprecated_key], deprecated_key)
    return default


def parse_duration(value: str, key: str) -> float:
    """Parse a timeout in seconds, either an integer or an ISO-8601 'PTnS' duration"""
    match = _ISO_SECONDS.match(value.strip())
    if match:
        return float(match.group(1))
    return float(_parse_int(value, key))


def _parse_int(value: str, key: str) -> int:
    try:
        return int(value.strip())
    except ValueError as e:
        raise ConfigurationError(f"{key} is not a valid integer: {value}") from e
