from __future__ import annotations
"""Gateway to the document management system (OpenKM REST API).

Receipts live under a deterministic tree::

    <basePath>/<YYYY>/<MM>/<purchaseId>/<filename>

so that the path stored in ``purchases.img_url`` can always be recomputed from
the purchase row. Every call authenticates with HTTP Basic and runs on a
short-lived ``httpx.Client``; nothing (cookies, sessions) survives between
calls.
"""
import logging
from datetime import date
from typing import Any, Mapping, Optional

import httpx
from werkzeug.utils import secure_filename

from reimburse.errors import DmsNotFoundError, DmsRejectedError, DmsTransportError

log = logging.getLogger(__name__)

REST_PREFIX = '/services/rest'


def canonical_path(base_path: str, purchase_id: int, purchase_date: date, filename: str) -> str:
    safe_name = secure_filename(filename or '') or 'document'
    return f"{base_path.rstrip('/')}/{purchase_date.year:04d}/{purchase_date.month:02d}/{purchase_id}/{safe_name}"


def filename_from_path(path: Optional[str]) -> str:
    if not path:
        return 'document'
    return path.rsplit('/', 1)[-1] or 'document'


class DmsGateway:
    def __init__(self, base_url: str, username: str, password: str, base_path: str,
                 timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip('/') + REST_PREFIX
        self.auth = httpx.BasicAuth(username, password)
        self.base_path = base_path.rstrip('/')
        self.timeout = httpx.Timeout(timeout)
        self.transport = transport

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'DmsGateway':
        return cls(
            config['OPENKM_URL'],
            config['OPENKM_USERNAME'],
            config['OPENKM_PASSWORD'],
            config['OPENKM_BASE_PATH'],
            timeout=config.get('HTTP_TIMEOUT_SECONDS', 30.0),
            transport=config.get('DMS_TRANSPORT'),
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, auth=self.auth, timeout=self.timeout, transport=self.transport)

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            with self._client() as client:
                return client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise DmsTransportError(f"DMS request timed out: {method} {url}") from e
        except httpx.RequestError as e:
            raise DmsTransportError(f"DMS unreachable: {e}") from e

    def path_for(self, purchase_id: int, purchase_date: date, filename: str) -> str:
        return canonical_path(self.base_path, purchase_id, purchase_date, filename)

    def ensure_folder(self, path: str):
        """Create a folder; an existing folder (any non-2xx answer) is not an error."""
        resp = self._send('POST', '/folder/create', json={'path': path})
        if resp.status_code in (401, 403):
            raise DmsTransportError(f"DMS rejected credentials ({resp.status_code})")
        if not resp.is_success:
            log.debug('Folder creation skipped (might exist): %s [%s]', path, resp.status_code)

    def upload(self, purchase_id: int, purchase_date: date, filename: str, content: bytes,
               mimetype: str = 'application/octet-stream') -> str:
        doc_path = self.path_for(purchase_id, purchase_date, filename)
        year_path = f"{self.base_path}/{purchase_date.year:04d}"
        month_path = f"{year_path}/{purchase_date.month:02d}"
        for folder in (year_path, month_path, f"{month_path}/{purchase_id}"):
            self.ensure_folder(folder)
        resp = self._send(
            'POST', '/document/createSimple',
            data={'docPath': doc_path},
            files={'content': (filename_from_path(doc_path), content, mimetype)},
        )
        if resp.status_code in (401, 403):
            raise DmsTransportError(f"DMS rejected credentials ({resp.status_code})")
        if resp.status_code not in (200, 201):
            raise DmsRejectedError(f"Failed to upload document to DMS. Status: {resp.status_code}")
        log.info('Uploaded receipt for purchase %s to %s', purchase_id, doc_path)
        return doc_path

    def download(self, path: str) -> bytes:
        resp = self._send('GET', '/document/getContent', params={'docId': path})
        if resp.status_code == 404:
            raise DmsNotFoundError(f"Document not found in DMS: {path}")
        if resp.status_code != 200:
            raise DmsTransportError(f"Failed to download document from DMS. Status: {resp.status_code}")
        return resp.content

    def delete(self, path: str):
        resp = self._send('DELETE', '/document/delete', params={'docId': path})
        if resp.status_code == 404:
            log.info('Document already absent in DMS: %s', path)
            return
        if not resp.is_success:
            raise DmsTransportError(f"Failed to delete document from DMS. Status: {resp.status_code}")

    def delete_quietly(self, path: Optional[str]) -> bool:
        """Best-effort delete; failures leave an orphan and are only logged."""
        if not path:
            return True
        try:
            self.delete(path)
            return True
        except DmsTransportError as e:
            log.warning('Could not delete document %s from DMS (orphaned blob): %s', path, e.description)
            return False

    def replace(self, old_path: Optional[str], purchase_id: int, purchase_date: date, filename: str,
                content: bytes, mimetype: str = 'application/octet-stream') -> str:
        self.delete_quietly(old_path)
        return self.upload(purchase_id, purchase_date, filename, content, mimetype)
