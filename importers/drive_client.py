"""
Google Drive REST API client for the content importer.

This module provides a client wrapper for the Drive v3 REST API, handling
bearer authentication, retries, rate limiting, folder creation and streamed
resumable file uploads.
"""

import json
import logging
import re
import threading
import time
from typing import Any, BinaryIO, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import ContentStreamError, DriveApiError

logger = logging.getLogger('drive_content_importer.importers.drive_client')

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Resumable upload chunks must be multiples of this size (except the last one)
UPLOAD_CHUNK_GRANULARITY = 256 * 1024

RANGE_HEADER_PATTERN = re.compile(r'bytes=(\d+)-(\d+)')


class DriveClient:
    """Drive v3 REST API client with retry logic and rate limiting."""

    DEFAULT_API_URL = "https://www.googleapis.com/drive/v3"
    DEFAULT_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"
    DEFAULT_CHUNK_SIZE = 32 * UPLOAD_CHUNK_GRANULARITY
    DEFAULT_TIMEOUT = 30
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_RETRY_BACKOFF = 0.5
    DEFAULT_RATE_LIMIT = 0.0

    def __init__(
        self,
        access_token: str,
        api_url: str = DEFAULT_API_URL,
        upload_url: str = DEFAULT_UPLOAD_URL,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        verify_ssl: bool = True,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_factor: float = DEFAULT_RETRY_BACKOFF,
        rate_limit: float = DEFAULT_RATE_LIMIT
    ):
        """
        Initialize Drive client.

        Args:
            access_token: OAuth2 bearer token
            api_url: Base URL for metadata requests
            upload_url: Base URL for media uploads
            chunk_size: Resumable upload chunk size in bytes (multiple of 256 KiB)
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            max_retries: Maximum number of retries for failed requests
            retry_backoff_factor: Backoff factor for retries
            rate_limit: Minimum seconds between requests (0 = no limit)
        """
        if chunk_size <= 0 or chunk_size % UPLOAD_CHUNK_GRANULARITY:
            raise ValueError(
                f"chunk_size must be a positive multiple of {UPLOAD_CHUNK_GRANULARITY}"
            )

        self.api_url = api_url.rstrip('/')
        self.upload_url = upload_url.rstrip('/')
        self.chunk_size = chunk_size
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.rate_limit = rate_limit
        self._last_request_time = 0.0
        # Upload workers share one client; spacing is checked and updated atomically
        self._rate_lock = threading.Lock()

        # Setup session with retry strategy
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {access_token}',
            'Accept': 'application/json'
        })

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            raise_on_status=False
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

        logger.debug(f"Initialized Drive client for {self.api_url}")

    def _handle_rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        if self.rate_limit <= 0:
            return

        with self._rate_lock:
            time_since_last = time.time() - self._last_request_time

            if time_since_last < self.rate_limit:
                sleep_time = self.rate_limit - time_since_last
                logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
                time.sleep(sleep_time)

            self._last_request_time = time.time()

    def _send(self, method: str, url: str, retry_on_429: bool = True, **kwargs) -> requests.Response:
        """
        Send one HTTP request, mapping transport failures to DriveApiError.

        Args:
            method: HTTP method
            url: Absolute request URL
            retry_on_429: Honour Retry-After once if the adapter retries ran out
            **kwargs: Passed through to requests

        Returns:
            Response object; status codes are checked by the caller

        Raises:
            DriveApiError: For connection failures and timeouts
        """
        self._handle_rate_limit()

        logger.debug(f"{method} {url}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                verify=self.verify_ssl,
                timeout=self.timeout,
                allow_redirects=False,
                **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"Request failed: {method} {url} - {str(e)}")
            raise DriveApiError(f"{method} {url} failed: {e}") from e

        logger.debug(f"Response status: {response.status_code}")

        # Handle rate limiting (429) with custom backoff
        if response.status_code == 429 and retry_on_429:
            retry_after = response.headers.get('Retry-After', '1')
            try:
                wait_time = int(retry_after)
            except ValueError:
                wait_time = 1

            logger.warning(f"Rate limited (429). Retrying after {wait_time}s")
            time.sleep(wait_time)
            return self._send(method, url, retry_on_429=False, **kwargs)

        return response

    @staticmethod
    def _raise_for_status(response: requests.Response, action: str) -> None:
        """Raise DriveApiError for any 4xx/5xx response."""
        if response.status_code < 400:
            return

        logger.error(f"{action} failed with status {response.status_code}: {response.text}")
        raise DriveApiError(
            f"{action} failed with status {response.status_code}",
            status_code=response.status_code,
            response_text=response.text
        )

    @staticmethod
    def _file_id(response: requests.Response, action: str) -> str:
        try:
            return response.json()['id']
        except (ValueError, KeyError) as e:
            raise DriveApiError(
                f"{action} returned no file id",
                status_code=response.status_code,
                response_text=response.text
            ) from e

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        """
        Create a folder.

        Args:
            name: Folder display name
            parent_id: Destination parent id, root level when empty

        Returns:
            Id of the created folder
        """
        metadata: Dict[str, Any] = {'name': name, 'mimeType': FOLDER_MIME_TYPE}
        if parent_id:
            metadata['parents'] = [parent_id]

        return self.create_file(metadata)

    def create_file(self, metadata: Dict[str, Any], stream: Optional[BinaryIO] = None) -> str:
        """
        Create a file, optionally with content.

        Content is sent with a resumable upload session, chunk by chunk, so the
        stream's length does not have to be known up front.

        Args:
            metadata: Drive file resource (name, parents, modifiedTime, mimeType)
            stream: Readable binary stream, or None for a metadata-only file

        Returns:
            Id of the created file
        """
        action = f"Create '{metadata.get('name', '')}'"

        if stream is None:
            response = self._send(
                'POST',
                f"{self.api_url}/files",
                params={'fields': 'id'},
                json=metadata
            )
            self._raise_for_status(response, action)
            return self._file_id(response, action)

        session_url = self._start_upload_session(metadata, action)
        return self._upload_chunks(session_url, stream, action)

    def _start_upload_session(self, metadata: Dict[str, Any], action: str) -> str:
        """Open a resumable upload session and return its URL."""
        response = self._send(
            'POST',
            f"{self.upload_url}/files",
            params={'uploadType': 'resumable', 'fields': 'id'},
            data=json.dumps(metadata),
            headers={'Content-Type': 'application/json; charset=UTF-8'}
        )
        self._raise_for_status(response, action)

        session_url = response.headers.get('Location')
        if not session_url:
            raise DriveApiError(
                f"{action} returned no upload session",
                status_code=response.status_code,
                response_text=response.text
            )
        return session_url

    def _read(self, stream: BinaryIO, size: int) -> bytes:
        try:
            return stream.read(size)
        except OSError as e:
            raise ContentStreamError(f"Failed to read content: {e}") from e

    def _upload_chunks(self, session_url: str, stream: BinaryIO, action: str) -> str:
        """
        Send the stream to an upload session.

        A full buffer is sent with an open-ended range; the total length is
        declared once the stream is exhausted. Bytes the server reports as
        not yet received are resent.
        """
        buffer = b''
        offset = 0
        eof = False

        while True:
            while len(buffer) < self.chunk_size and not eof:
                data = self._read(stream, self.chunk_size - len(buffer))
                if not data:
                    eof = True
                else:
                    buffer += data

            if eof:
                total = offset + len(buffer)
                chunk = buffer
                if chunk:
                    content_range = f"bytes {offset}-{total - 1}/{total}"
                else:
                    content_range = f"bytes */{total}"
            else:
                chunk = buffer[:self.chunk_size]
                content_range = f"bytes {offset}-{offset + len(chunk) - 1}/*"

            response = self._send(
                'PUT',
                session_url,
                data=chunk,
                headers={'Content-Range': content_range}
            )

            if response.status_code in (200, 201):
                logger.debug(f"{action}: upload complete ({offset + len(chunk)} bytes)")
                return self._file_id(response, action)

            if response.status_code != 308:
                self._raise_for_status(response, action)
                raise DriveApiError(
                    f"{action} got unexpected status {response.status_code}",
                    status_code=response.status_code,
                    response_text=response.text
                )

            committed = self._committed_bytes(response)
            if committed < offset:
                raise DriveApiError(
                    f"{action}: server lost already uploaded bytes "
                    f"(has {committed}, expected at least {offset})",
                    status_code=response.status_code
                )

            accepted = min(committed - offset, len(chunk))
            buffer = buffer[accepted:]
            offset += accepted
            logger.debug(f"{action}: {offset} bytes committed")

    @staticmethod
    def _committed_bytes(response: requests.Response) -> int:
        """Number of bytes the server holds, from the Range header of a 308."""
        match = RANGE_HEADER_PATTERN.match(response.headers.get('Range', ''))
        if not match:
            return 0
        return int(match.group(2)) + 1

    @classmethod
    def from_config(cls, access_token: str, config: Dict[str, Any]) -> 'DriveClient':
        """
        Create client from configuration dictionary.

        Args:
            access_token: OAuth2 bearer token
            config: Configuration dict with 'drive' and 'advanced' sections

        Returns:
            Configured DriveClient instance
        """
        drive_config = config.get('drive', {})
        advanced_config = config.get('advanced', {})

        return cls(
            access_token=access_token,
            api_url=drive_config.get('api_url', cls.DEFAULT_API_URL),
            upload_url=drive_config.get('upload_url', cls.DEFAULT_UPLOAD_URL),
            chunk_size=drive_config.get('chunk_size', cls.DEFAULT_CHUNK_SIZE),
            verify_ssl=advanced_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', cls.DEFAULT_TIMEOUT),
            max_retries=advanced_config.get('max_retries', cls.DEFAULT_MAX_RETRIES),
            retry_backoff_factor=advanced_config.get('retry_backoff_factor', cls.DEFAULT_RETRY_BACKOFF),
            rate_limit=advanced_config.get('rate_limit', cls.DEFAULT_RATE_LIMIT)
        )


__all__ = ['DriveClient', 'FOLDER_MIME_TYPE']
