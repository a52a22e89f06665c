"""
Environment Loader - Bootstrap properties from environment variables.

Mapping:
- ``SONAR_HOST_URL``, ``SONAR_USER_HOME``, ``SONAR_TOKEN``, ``SONAR_REGION``
  to their well-known properties
- ``SONAR_SCANNER_<NAME>`` to ``sonar.scanner.<camelCaseName>``
  (``SONAR_SCANNER_JAVA_OPTS`` gives ``sonar.scanner.javaOpts``)
- ``SONAR_SCANNER_JSON_PARAMS`` (or the deprecated ``SONARQUBE_SCANNER_PARAMS``)
  holding a JSON object of extra properties

Values already loaded win; a conflicting value is ignored with a warning.
"""

import json
import os
from typing import Any, Dict, Mapping, Optional

import structlog

from ..errors import ConfigurationError
from ..properties import (
    GENERIC_ENV_PREFIX,
    HOST_URL,
    HOST_URL_ENV,
    REGION_ENV,
    SCANNER_JSON_PARAMS_ENV,
    SCANNER_JSON_PARAMS_ENV_DEPRECATED,
    SONAR_REGION,
    SONAR_TOKEN,
    SONAR_USER_HOME,
    TOKEN_ENV,
    USER_HOME_ENV,
)

_WELL_KNOWN = {
    HOST_URL_ENV: HOST_URL,
    USER_HOME_ENV: SONAR_USER_HOME,
    TOKEN_ENV: SONAR_TOKEN,
    REGION_ENV: SONAR_REGION,
}


def load_environment(env: Optional[Mapping[str, str]] = None, logger: Optional[Any] = None) -> Dict[str, str]:
    """
    Load bootstrap properties from the environment.

    Args:
        env: Environment variables (os.environ if None)
        logger: structlog logger (module logger if None)

    Returns:
        Properties found in the environment

    Raises:
        ConfigurationError: If the JSON parameters cannot be parsed
    """
    env = os.environ if env is None else env
    logger = logger or structlog.get_logger(__name__)
    loaded: Dict[str, str] = {}

    for variable, key in _WELL_KNOWN.items():
        if variable in env:
            loaded[key] = env[variable]

    for variable, value in env.items():
        if variable != SCANNER_JSON_PARAMS_ENV and variable.startswith(GENERIC_ENV_PREFIX):
            _load_generic_variable(variable, value, loaded, logger)

    json_params = env.get(SCANNER_JSON_PARAMS_ENV)
    old_json_params = env.get(SCANNER_JSON_PARAMS_ENV_DEPRECATED)
    if json_params is not None:
        if old_json_params is not None and old_json_params != json_params:
            logger.warning(
                "environment_variable_ignored",
                variable=SCANNER_JSON_PARAMS_ENV_DEPRECATED,
                message=f"Ignoring environment variable '{SCANNER_JSON_PARAMS_ENV_DEPRECATED}' "
                        f"because '{SCANNER_JSON_PARAMS_ENV}' is set",
            )
        _load_json_params(json_params, SCANNER_JSON_PARAMS_ENV, loaded, logger)
    elif old_json_params is not None:
        _load_json_params(old_json_params, SCANNER_JSON_PARAMS_ENV_DEPRECATED, loaded, logger)

    return loaded


def env_to_property_key(variable: str) -> Optional[str]:
    """``SONAR_SCANNER_JAVA_OPTS`` -> ``sonar.scanner.javaOpts``"""
    suffix = variable[len(GENERIC_ENV_PREFIX):]
    if not suffix:
        return None
    words = [word.lower() for word in suffix.split("_")]
    camel_case = words[0] + "".join(word.capitalize() for word in words[1:])
    return f"sonar.scanner.{camel_case}"


def _load_generic_variable(variable: str, value: str, loaded: Dict[str, str], logger: Any):
    key = env_to_property_key(variable)
    if key is None:
        return
    if key in loaded:
        if loaded[key] != value:
            logger.warning(
                "environment_variable_ignored",
                variable=variable,
                message=f"Ignoring environment variable '{variable}' because it is already defined in the properties",
            )
        return
    loaded[key] = value


def _load_json_params(payload: str, variable: str, loaded: Dict[str, str], logger: Any):
    try:
        properties = json.loads(payload)
    except ValueError as e:
        raise ConfigurationError(
            f"Failed to parse JSON properties from environment variable '{variable}'"
        ) from e
    if properties is None:
        return
    if not isinstance(properties, dict):
        raise ConfigurationError(
            f"Failed to parse JSON properties from environment variable '{variable}'"
        )

    for key, value in properties.items():
        value = "" if value is None else str(value)
        if key in loaded:
            if loaded[key] != value:
                logger.warning(
                    "environment_property_ignored",
                    property=key,
                    message=f"Ignoring property '{key}' from env variable '{variable}' because it is already defined",
                )
            continue
        loaded[key] = value
