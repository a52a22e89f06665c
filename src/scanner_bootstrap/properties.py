"""
Property keys understood by the bootstrapper.

All configuration flows as a flat ``Dict[str, str]`` of these keys, merged
from the environment, an optional properties file and the command line.
"""

# Server / endpoint
HOST_URL = "sonar.host.url"
SONARQUBE_CLOUD_URL = "sonar.scanner.sonarcloudUrl"
API_BASE_URL = "sonar.scanner.apiBaseUrl"
SONAR_REGION = "sonar.region"

# Authentication
SONAR_TOKEN = "sonar.token"
SONAR_LOGIN = "sonar.login"
SONAR_PASSWORD = "sonar.password"

# Directories
SONAR_USER_HOME = "sonar.userHome"
WORK_DIR = "sonar.working.directory"
PROJECT_BASEDIR = "sonar.projectBaseDir"

# Provisioning
SCANNER_OS = "sonar.scanner.os"
SCANNER_ARCH = "sonar.scanner.arch"
JAVA_EXECUTABLE_PATH = "sonar.scanner.javaExePath"
SKIP_JRE_PROVISIONING = "sonar.scanner.skipJreProvisioning"
ENGINE_JAR_PATH = "sonar.scanner.engineJarPath"
SCANNER_JAVA_OPTS = "sonar.scanner.javaOpts"

# HTTP
SOCKET_TIMEOUT = "sonar.scanner.socketTimeout"
CONNECT_TIMEOUT = "sonar.scanner.connectTimeout"
RESPONSE_TIMEOUT = "sonar.scanner.responseTimeout"
READ_TIMEOUT_SEC_DEPRECATED = "sonar.ws.timeout"
PROXY_HOST = "sonar.scanner.proxyHost"
PROXY_PORT = "sonar.scanner.proxyPort"
PROXY_USER = "sonar.scanner.proxyUser"
PROXY_PASSWORD = "sonar.scanner.proxyPassword"

# Internal
SCANNER_APP = "sonar.scanner.app"
SCANNER_APP_VERSION = "sonar.scanner.appVersion"
DUMP_TO_FILE = "sonar.scanner.dumpToFile"
SKIP = "sonar.scanner.skip"
WAS_JRE_CACHE_HIT = "sonar.scanner.wasJreCacheHit"
WAS_ENGINE_CACHE_HIT = "sonar.scanner.wasEngineCacheHit"

# Environment variables
HOST_URL_ENV = "SONAR_HOST_URL"
USER_HOME_ENV = "SONAR_USER_HOME"
TOKEN_ENV = "SONAR_TOKEN"
REGION_ENV = "SONAR_REGION"
SCANNER_JSON_PARAMS_ENV = "SONAR_SCANNER_JSON_PARAMS"
SCANNER_JSON_PARAMS_ENV_DEPRECATED = "SONARQUBE_SCANNER_PARAMS"
GENERIC_ENV_PREFIX = "SONAR_SCANNER_"
