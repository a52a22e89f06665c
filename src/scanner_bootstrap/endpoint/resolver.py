"""
Endpoint Resolver - Decide which server or cloud instance the scanner talks to.

Pure function over the property map: no network or filesystem access.

Decision order:
1. ``sonar.host.url``: official cloud instance if it matches one, else a
   self-hosted server whose API lives under ``/api/v2``
2. ``sonar.scanner.sonarcloudUrl``: official instance, or a custom cloud
   instance that requires ``sonar.scanner.apiBaseUrl``
3. ``sonar.scanner.apiBaseUrl`` alone is rejected
4. ``sonar.region`` (default: the global instance)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from ..errors import ConfigurationError
from ..properties import (
    API_BASE_URL,
    HOST_URL,
    REGION_ENV,
    SONAR_REGION,
    SONARQUBE_CLOUD_URL,
)


@dataclass(frozen=True)
class Endpoint:
    """Resolved web and API base URLs"""
    web_endpoint: str
    api_endpoint: str
    is_cloud: bool
    region_label: Optional[str] = None

    @classmethod
    def for_server(cls, web_endpoint: str) -> "Endpoint":
        """Self-hosted server: the API is derived from the web URL"""
        api_endpoint = web_endpoint.rstrip("/") + "/api/v2"
        return cls(web_endpoint=web_endpoint, api_endpoint=api_endpoint, is_cloud=False)


class OfficialCloudInstance(Enum):
    """Official cloud instances, one per region"""
    GLOBAL = Endpoint("https://sonarcloud.io", "https://api.sonarcloud.io", True, None)
    US = Endpoint("https://sonarqube.us", "https://api.sonarqube.us", True, "US")

    @property
    def endpoint(self) -> Endpoint:
        return self.value

    @classmethod
    def region_codes_without_global(cls):
        # the default region may get another name later, so "global" is not a valid code
        return sorted(instance.name.lower() for instance in cls if instance is not cls.GLOBAL)

    @classmethod
    def from_region_code(cls, region_code: Optional[str]) -> Optional["OfficialCloudInstance"]:
        """Blank means the global instance; unknown codes and "global" give None"""
        if region_code is None or not region_code.strip():
            return cls.GLOBAL
        instance = cls.__members__.get(region_code.strip().upper())
        if instance is cls.GLOBAL:
            return None
        return instance

    @classmethod
    def from_web_endpoint(cls, url: str) -> Optional["OfficialCloudInstance"]:
        for instance in cls:
            if instance.endpoint.web_endpoint == url:
                return instance
        return None


def clean_url(url: str) -> str:
    """Trim whitespace and every trailing slash"""
    return url.strip().rstrip("/")


def resolve_endpoint(properties: Mapping[str, str]) -> Endpoint:
    """
    Resolve the endpoint from bootstrap properties.

    Args:
        properties: Bootstrap properties

    Returns:
        Resolved Endpoint

    Raises:
        ConfigurationError: On conflicting, incomplete or invalid properties
    """
    if HOST_URL in properties:
        return _resolve_from_host_url(properties)
    if SONARQUBE_CLOUD_URL in properties:
        return _resolve_custom_cloud(properties)
    if API_BASE_URL in properties:
        raise ConfigurationError(
            f"Defining '{API_BASE_URL}' without '{SONARQUBE_CLOUD_URL}' is not supported."
        )
    return _resolve_from_region(properties)


def _resolve_from_host_url(properties: Mapping[str, str]) -> Endpoint:
    official = _maybe_official_instance(properties, HOST_URL)
    if official is not None:
        return official
    return Endpoint.for_server(clean_url(properties[HOST_URL]))


def _resolve_custom_cloud(properties: Mapping[str, str]) -> Endpoint:
    official = _maybe_official_instance(properties, SONARQUBE_CLOUD_URL)
    if official is not None:
        return official
    if API_BASE_URL not in properties:
        raise ConfigurationError(
            f"Defining a custom '{SONARQUBE_CLOUD_URL}' without providing "
            f"'{API_BASE_URL}' is not supported."
        )
    return Endpoint(
        web_endpoint=clean_url(properties[SONARQUBE_CLOUD_URL]),
        api_endpoint=clean_url(properties[API_BASE_URL]),
        is_cloud=True,
    )


def _resolve_from_region(properties: Mapping[str, str]) -> Endpoint:
    region_code = properties.get(SONAR_REGION)
    instance = OfficialCloudInstance.from_region_code(region_code)
    if instance is None:
        valid = ", ".join(f"'{code}'" for code in OfficialCloudInstance.region_codes_without_global())
        raise ConfigurationError(
            f"Invalid region '{region_code}'. Valid regions are: {valid}. "
            f"Please check the '{SONAR_REGION}' property or the '{REGION_ENV}' environment variable."
        )
    return instance.endpoint


def _maybe_official_instance(properties: Mapping[str, str], url_property: str) -> Optional[Endpoint]:
    """
    Match the URL against official instances, checking sonar.region agrees.

    A region combined with a URL that is not an official instance is a conflict.
    """
    instance = OfficialCloudInstance.from_web_endpoint(clean_url(properties[url_property]))
    has_region = SONAR_REGION in properties
    if instance is not None:
        if has_region and OfficialCloudInstance.from_region_code(properties[SONAR_REGION]) is not instance:
            raise _inconsistent_url_and_region(url_property)
        return instance.endpoint
    if has_region:
        raise _inconsistent_url_and_region(url_property)
    return None


def _inconsistent_url_and_region(url_property: str) -> ConfigurationError:
    return ConfigurationError(
        f"Inconsistent values for properties '{SONAR_REGION}' and '{url_property}'. "
        f"Please only specify one of the two properties."
    )
