"""
Google Drive uploader for repository archives

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httplib2
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.http import MediaFileUpload

from .archiver import ArchiveFile
from .credentials import CredentialBroker

ARCHIVE_MIME_TYPE = "application/zip"
BACKUP_QUERY = f"mimeType='{ARCHIVE_MIME_TYPE}' and trashed=false"
LIST_FIELDS = "nextPageToken, files(id, name, createdTime, modifiedTime)"
FILE_FIELDS = "id, name, createdTime, modifiedTime"
LIST_PAGE_SIZE = 1000
HTTP_TIMEOUT = 300


def parse_drive_time(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp as returned by the Drive API"""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(
        timezone.utc
    )


@dataclass(frozen=True)
class RemoteArchive:
    id: str
    name: str
    created_time: Optional[datetime] = None
    modified_time: Optional[datetime] = None

    @property
    def last_modified(self) -> Optional[datetime]:
        return self.modified_time or self.created_time

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "RemoteArchive":
        return cls(
            id=item["id"],
            name=item.get("name", ""),
            created_time=parse_drive_time(item.get("createdTime")),
            modified_time=parse_drive_time(item.get("modifiedTime")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdTime": self.created_time.isoformat() if self.created_time else None,
            "modifiedTime": self.modified_time.isoformat()
            if self.modified_time
            else None,
        }


class DriveUploader:
    """Uploads, lists and deletes archives; every call goes through the broker"""

    def __init__(
        self,
        broker: CredentialBroker,
        service: Optional[Any] = None,
        folder_id: Optional[str] = None,
        timeout: int = HTTP_TIMEOUT,
    ):
        self.broker = broker
        self.folder_id = folder_id
        self.timeout = timeout
        self.logger = logging.getLogger(self.__class__.__name__)
        self._service = service
        self._local = threading.local()

    @property
    def service(self):
        """Drive client for the calling thread; httplib2 connections are not shared"""
        if self._service is not None:
            return self._service
        service = getattr(self._local, "service", None)
        if service is None:
            service = self._build_service()
            self._local.service = service
        return service

    def _build_service(self):
        # Only the broker refreshes; the transport must not retry 401s itself
        http = AuthorizedHttp(
            self.broker.credentials,
            http=httplib2.Http(timeout=self.timeout),
            refresh_status_codes=(),
        )
        return build("drive", "v3", http=http, cache_discovery=False)

    def probe(self):
        """Cheap read-only call used to check the access token"""
        return self.service.files().list(pageSize=1, fields="files(id)").execute()

    def upload(self, archive: ArchiveFile) -> RemoteArchive:
        body: Dict[str, Any] = {"name": archive.name, "mimeType": ARCHIVE_MIME_TYPE}
        if self.folder_id:
            body["parents"] = [self.folder_id]

        self.logger.info(
            f"[UPLOAD] Uploading {archive.name} to Google Drive "
            f"({archive.size_bytes / 1024 / 1024:.2f} MB)..."
        )

        def create():
            # A replay after refresh needs a fresh media stream
            media = MediaFileUpload(
                str(archive.path), mimetype=ARCHIVE_MIME_TYPE, resumable=False
            )
            return (
                self.service.files()
                .create(body=body, media_body=media, fields=FILE_FIELDS)
                .execute()
            )

        created = self.broker.call_with_auth_retry(create)
        remote = RemoteArchive.from_api(created)
        self.logger.info(f"[UPLOAD] Uploaded {remote.name} (id {remote.id})")
        return remote

    def list_backups(self, query: str = BACKUP_QUERY) -> List[RemoteArchive]:
        """Return every archive matching ``query``, following all pages"""
        if self.folder_id:
            query = f"{query} and '{self.folder_id}' in parents"

        backups: List[RemoteArchive] = []
        page_token: Optional[str] = None

        while True:

            def list_page(token=page_token):
                return (
                    self.service.files()
                    .list(
                        q=query,
                        fields=LIST_FIELDS,
                        pageSize=LIST_PAGE_SIZE,
                        pageToken=token,
                        orderBy="modifiedTime desc",
                    )
                    .execute()
                )

            response = self.broker.call_with_auth_retry(list_page)
            backups.extend(
                RemoteArchive.from_api(item) for item in response.get("files", [])
            )
            page_token = response.get("nextPageToken")
            if not page_token:
                break

        self.logger.debug(f"[LIST] Found {len(backups)} archives in Google Drive")
        return backups

    def delete(self, file_id: str):
        self.broker.call_with_auth_retry(
            lambda: self.service.files().delete(fileId=file_id).execute()
        )

    def share_publicly(self, file_id: str) -> Dict[str, Any]:
        """Grant anyone-with-link read access and return the share links"""
        self.broker.call_with_auth_retry(
            lambda: self.service.permissions()
            .create(fileId=file_id, body={"role": "reader", "type": "anyone"})
            .execute()
        )
        return self.broker.call_with_auth_retry(
            lambda: self.service.files()
            .get(fileId=file_id, fields="webViewLink, webContentLink")
            .execute()
        )

    def test_connection(self) -> bool:
        """Test Drive connectivity with the current credentials"""
        try:
            self.broker.call_with_auth_retry(self.probe)
            return True
        except Exception as e:
            self.logger.error(f"Google Drive connection test failed: {str(e)}")
            return False
