"""
Upload relay for shop snapshot data.

Accepts uploads from the in-game export script and republishes them as a
secret GitHub gist, then fires a ``repository_dispatch`` event so the data
repository's workflow can ingest it.  Three request shapes are supported:

* ``{gist_url, file_count, timestamp, source}``: the client already created
  the gist; only the dispatch is sent.
* ``{files: {name: content}}``: create the gist, then dispatch.
* ``{filename, content, session_id, file_index, total_files, is_final}``:
  one file of a chunked upload.  Files are collected per session; the final
  chunk reassembles ``<base>_part<N>of<M>.json`` pieces and publishes them.

The relay is framework-free: :meth:`UploadRelay.handle` takes the HTTP method
and body and returns a :class:`RelayResponse`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os
import re
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

import requests

from services.upload_sessions import SessionStore
from utils.params import parse_int
from utils.timefmt import now_utc_iso

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

_GIST_ID = re.compile(r"/([a-f0-9]+)$")
_SPLIT_FILE = re.compile(r"^(.+)_part(\d+)of(\d+)\.json$")

log = logging.getLogger(__name__)


class GitHubError(Exception):
    """Raised when a GitHub API call fails or returns a non-2xx status."""
    pass


class GitHubClient:
    """Minimal client for the two GitHub endpoints the relay needs."""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 session: Optional[requests.Session] = None,
                 token: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        relay_config = (config or {}).get('relay', config or {})
        self.api_base = relay_config.get('api_base', "https://api.github.com").rstrip('/')
        self.repository = relay_config.get('repository', "elanthia-online/bodega")
        self.event_type = relay_config.get('event_type', "shop_data_upload")
        self.timeout = relay_config.get('timeout_seconds', 30)
        token_env = relay_config.get('token_env', "GITHUB_TOKEN")
        self.token = token if token is not None else os.environ.get(token_env, "")

        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f"Bearer {self.token}",
            'Accept': 'application/vnd.github.v3+json',
            'Content-Type': 'application/json',
            'User-Agent': 'Bodega-Upload-Relay/1.0',
        })

    def _post(self, path: str, payload: Dict[str, Any]) -> str:
        url = f"{self.api_base}{path}"
        try:
            response = self.session.post(url, data=json.dumps(payload), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.logger.error(f"GitHub request to {path} failed: {e}")
            raise GitHubError(str(e))
        if not 200 <= response.status_code < 300:
            raise GitHubError(f"HTTP {response.status_code}: {response.text}")
        return response.text

    def create_gist(self, files: Mapping[str, Any]) -> Tuple[str, str]:
        """Create a secret gist and return ``(html_url, gist_id)``."""
        payload = {
            'description': f"Bodega shop data upload - {now_utc_iso()}",
            'public': False,
            'files': {
                name: {'content': content if isinstance(content, str) else json.dumps(content)}
                for name, content in files.items()
            },
        }
        text = self._post('/gists', payload)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise GitHubError(f"Invalid JSON response from gist API: {e}")
        return data.get('html_url'), data.get('id')

    def dispatch(self, client_payload: Dict[str, Any]) -> None:
        """Fire the ``repository_dispatch`` event for the data repository."""
        self._post(
            f"/repos/{self.repository}/dispatches",
            {'event_type': self.event_type, 'client_payload': client_payload},
        )


@dataclass
class RelayResponse:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=lambda: dict(CORS_HEADERS))

    def json(self) -> str:
        return json.dumps(self.body) if self.body else ""


def gist_id_from_url(url: str) -> Optional[str]:
    m = _GIST_ID.search(url or "")
    return m.group(1) if m else None


def reassemble_split_files(files: Mapping[str, str]) -> Dict[str, str]:
    """Join ``<base>_part<N>of<M>.json`` pieces back into ``<base>.json``.

    Shops from every part are concatenated in part order.  Other top-level
    keys come from the first readable part and ``chunk_info`` is dropped.
    Missing or unparseable parts are logged and skipped; a file with no
    readable shops is left out.
    """
    reassembled: Dict[str, str] = {}
    split: Dict[str, Dict[int, Tuple[str, int]]] = {}

    for filename, content in files.items():
        m = _SPLIT_FILE.match(filename)
        if m:
            base, part, total = m.group(1), int(m.group(2)), int(m.group(3))
            split.setdefault(f"{base}.json", {})[part] = (content, total)
        else:
            reassembled[filename] = content

    for original, parts in split.items():
        log.info("Reassembling %s from %d parts", original, len(parts))
        total = parts[1][1] if 1 in parts else len(parts)
        shops = []
        base_data: Optional[Dict[str, Any]] = None
        for i in range(1, total + 1):
            if i not in parts:
                log.error("Missing part %d for %s", i, original)
                continue
            try:
                data = json.loads(parts[i][0])
            except (TypeError, ValueError) as e:
                log.error("Error parsing part %d of %s: %s", i, original, e)
                continue
            if not isinstance(data, dict):
                log.error("Part %d of %s is not a JSON object", i, original)
                continue
            if base_data is None:
                base_data = {k: v for k, v in data.items() if k not in ('shops', 'chunk_info')}
            if isinstance(data.get('shops'), list):
                shops.extend(data['shops'])

        if base_data is not None and shops:
            base_data['shops'] = shops
            reassembled[original] = json.dumps(base_data)
            log.info("Reassembled %s: %d shops", original, len(shops))
        else:
            log.error("Failed to reassemble %s", original)

    return reassembled


class UploadRelay:
    """Request handler for snapshot uploads."""

    def __init__(self, client: GitHubClient, sessions: Optional[SessionStore] = None,
                 clock: Callable[[], str] = now_utc_iso):
        self.client = client
        self.sessions = sessions if sessions is not None else SessionStore()
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def handle(self, method: str, body: Union[str, bytes, Mapping[str, Any], None]) -> RelayResponse:
        method = (method or "").upper()
        if method == 'OPTIONS':
            return RelayResponse(200)
        if method != 'POST':
            return RelayResponse(405, {'error': 'Method not allowed'})

        try:
            data = self._parse_body(body)
        except ValueError as e:
            return RelayResponse(400, {'error': 'Invalid JSON body', 'details': str(e)})

        try:
            if data.get('filename') and data.get('session_id'):
                return self._handle_chunk(data)
            if data.get('gist_url'):
                return self._handle_gist_url(data)
            if not isinstance(data.get('files'), dict):
                return RelayResponse(
                    400, {'error': 'Missing required data (neither gist_url nor files provided)'}
                )
            return self._handle_files(data)
        except Exception as e:
            self.logger.exception("Relay error")
            return RelayResponse(500, {'error': 'Internal server error', 'details': str(e)})

    @staticmethod
    def _parse_body(body) -> Dict[str, Any]:
        if body is None or body == "" or body == b"":
            return {}
        if isinstance(body, Mapping):
            return dict(body)
        if isinstance(body, bytes):
            body = body.decode('utf-8')
        data = json.loads(body)
        if not isinstance(data, dict):
            raise ValueError("request body must be a JSON object")
        return data

    def _handle_gist_url(self, data: Dict[str, Any]) -> RelayResponse:
        gist_url = data['gist_url']
        self.logger.info(f"Processing pre-created gist: {gist_url}")
        timestamp = data.get('timestamp') or self.clock()
        payload = {
            'gist_url': gist_url,
            'gist_id': gist_id_from_url(gist_url),
            'file_count': data.get('file_count') or 0,
            'timestamp': timestamp,
            'source': data.get('source') or 'bodega-script-gist',
        }
        try:
            self.client.dispatch(payload)
        except GitHubError as e:
            self.logger.error(f"Failed to trigger workflow: {e}")
            return RelayResponse(500, {'error': 'Failed to trigger workflow', 'details': str(e)})
        return RelayResponse(200, {
            'message': 'Workflow triggered successfully',
            'gist_url': gist_url,
            'timestamp': timestamp,
        })

    def _handle_files(self, data: Dict[str, Any]) -> RelayResponse:
        files = data['files']
        self.logger.info(f"Processing upload with {len(files)} files")
        try:
            gist_url, gist_id = self.client.create_gist(files)
        except GitHubError as e:
            self.logger.error(f"Failed to create gist: {e}")
            return RelayResponse(500, {'error': 'Failed to create gist', 'details': str(e)})

        timestamp = self.clock()
        payload = {
            'gist_url': gist_url,
            'gist_id': gist_id,
            'file_count': len(files),
            'timestamp': timestamp,
            'source': data.get('source') or 'bodega-api',
        }
        try:
            self.client.dispatch(payload)
        except GitHubError as e:
            self.logger.error(f"Failed to trigger workflow: {e}")
            # the gist exists, so this is reported as a partial success
            return RelayResponse(200, {
                'message': 'Gist created but workflow trigger failed',
                'gist_url': gist_url,
                'error': str(e),
            })
        return RelayResponse(200, {
            'message': 'Upload successful via gist',
            'gist_url': gist_url,
            'timestamp': timestamp,
        })

    def _handle_chunk(self, data: Dict[str, Any]) -> RelayResponse:
        session_id = data['session_id']
        filename = data['filename']
        content = data.get('content') or ""
        file_index = data.get('file_index')
        total_files = data.get('total_files')

        session = self.sessions.add_file(
            session_id, filename, content,
            total_expected=parse_int(total_files),
            timestamp=data.get('timestamp'),
            source=data.get('source'),
        )
        self.logger.debug(
            f"Session {session_id} has {len(session.files)}/{session.total_expected} files"
        )

        if not data.get('is_final'):
            return RelayResponse(200, {
                'message': f"File {filename} received ({file_index}/{total_files})",
                'session_id': session_id,
                'files_received': len(session.files),
            })

        self.logger.info(f"Final file received for session {session_id}, creating gist")
        try:
            files = reassemble_split_files(session.files)
            try:
                gist_url, gist_id = self.client.create_gist(files)
            except GitHubError as e:
                self.logger.error(f"Failed to create gist: {e}")
                return RelayResponse(500, {'error': 'Failed to create gist', 'details': str(e)})

            file_count = len(session.files)
            payload = {
                'gist_url': gist_url,
                'gist_id': gist_id,
                'file_count': file_count,
                'timestamp': session.timestamp,
                'source': session.source,
            }
            try:
                self.client.dispatch(payload)
            except GitHubError as e:
                self.logger.error(f"Failed to trigger workflow: {e}")
                return RelayResponse(200, {
                    'message': 'Multi-file upload complete, gist created but workflow trigger failed',
                    'gist_url': gist_url,
                    'error': str(e),
                })
            return RelayResponse(200, {
                'message': 'Multi-file upload complete and workflow triggered',
                'gist_url': gist_url,
                'session_id': session_id,
                'file_count': file_count,
                'timestamp': session.timestamp,
            })
        except Exception as e:
            self.logger.exception(f"Error processing final file for session {session_id}")
            return RelayResponse(500, {
                'error': 'Failed to process multi-file upload',
                'details': str(e),
            })
        finally:
            self.sessions.discard(session_id)
