"""
Scanner HTTP Client - REST and byte-streaming calls to the server.

Three base locations are used:
- the REST API (``sonar.scanner.apiBaseUrl``) for metadata and artifacts
- the web API (``sonar.host.url``) for legacy calls such as the server version
- external absolute URLs when artifact metadata provides a ``downloadUrl``

External downloads are never authenticated: the token must not leak to a
third-party host.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import aiohttp
import structlog

from ..errors import ScannerBootstrapError
from .config import HttpConfig

DOWNLOAD_CHUNK_SIZE = 64 * 1024


class HttpError(ScannerBootstrapError):
    """Raised when the server answers with a non-2xx status"""

    def __init__(self, url: str, status: int, reason: Optional[str] = None):
        message = f"Error status returned by url [{url}]: {status}"
        if reason:
            message += f" {reason}"
        super().__init__(message)
        self.url = url
        self.status = status


class ScannerHttpClient:
    """
    Thin aiohttp wrapper used by provisioning.

    Example:
        >>> async with ScannerHttpClient(config) as client:
        ...     metadata = await client.call_rest_api("/analysis/engine")
        ...     await client.download_from_rest_api("/analysis/engine", path)
    """

    def __init__(self, config: HttpConfig, logger: Optional[Any] = None):
        """
        Initialize the client. The session is opened lazily.

        Args:
            config: HTTP configuration
            logger: structlog logger (module logger if None)
        """
        self.config = config
        self.logger = logger or structlog.get_logger(__name__)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "ScannerHttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(
                total=self.config.response_timeout or None,
                sock_connect=self.config.connect_timeout or None,
                sock_read=self.config.socket_timeout or None,
            )
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": self.config.user_agent},
            )
        return self._session

    async def call_rest_api(self, url_path: str) -> str:
        """GET a REST API path and return the response body"""
        return await self._call_api(self._rest_url(url_path))

    async def call_web_api(self, url_path: str) -> str:
        """GET a web API path and return the response body"""
        return await self._call_api(self._web_url(url_path))

    async def download_from_rest_api(self, url_path: str, to_file: Path):
        await self._download_file(self._rest_url(url_path), to_file, authentication=True)

    async def download_from_web_api(self, url_path: str, to_file: Path):
        await self._download_file(self._web_url(url_path), to_file, authentication=True)

    async def download_from_external_url(self, url: str, to_file: Path):
        await self._download_file(url, to_file, authentication=False)

    def _rest_url(self, url_path: str) -> str:
        _check_leading_slash(url_path)
        return self.config.rest_api_base_url + url_path

    def _web_url(self, url_path: str) -> str:
        _check_leading_slash(url_path)
        return self.config.web_api_base_url + url_path

    def _request_kwargs(self, authentication: bool, accept: Optional[str]) -> Dict[str, Any]:
        headers: Dict[str, str] = {}
        kwargs: Dict[str, Any] = {"headers": headers}
        if authentication:
            if self.config.token:
                headers["Authorization"] = f"Bearer {self.config.token}"
            elif self.config.login:
                kwargs["auth"] = aiohttp.BasicAuth(self.config.login, self.config.password or "")
        if accept:
            headers["Accept"] = accept
        if self.config.proxy_url:
            kwargs["proxy"] = self.config.proxy_url
            if self.config.proxy_user:
                kwargs["proxy_auth"] = aiohttp.BasicAuth(
                    self.config.proxy_user, self.config.proxy_password or ""
                )
        return kwargs

    async def _call_api(self, url: str) -> str:
        session = self._get_session()
        self.logger.debug("http_get", url=url)
        async with session.get(url, **self._request_kwargs(True, None)) as response:
            if response.status >= 300:
                raise HttpError(url, response.status, response.reason)
            return await response.text()

    async def _download_file(self, url: str, to_file: Path, authentication: bool):
        """
        Stream a URL into a file. A partially written file is deleted on failure.

        Raises:
            HttpError: If the response status is not 2xx
            aiohttp.ClientError / OSError: On connectivity or write problems
        """
        session = self._get_session()
        self.logger.debug("http_download", url=url, to_file=str(Path(to_file).absolute()))
        try:
            async with session.get(url, **self._request_kwargs(authentication, "application/octet-stream")) as response:
                if response.status >= 300:
                    raise HttpError(url, response.status, response.reason)
                with open(to_file, "wb") as out:
                    async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                        out.write(chunk)
        except BaseException:
            Path(to_file).unlink(missing_ok=True)
            raise

    def __repr__(self) -> str:
        """String representation"""
        return (
            f"ScannerHttpClient("
            f"web={self.config.web_api_base_url}, "
            f"api={self.config.rest_api_base_url})"
        )


def _check_leading_slash(url_path: str):
    if not url_path.startswith("/"):
        raise ValueError(f"URL path must start with slash: {url_path}")
