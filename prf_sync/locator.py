"""Workbook locator - resolves the configured workbook to (drive_id, item_id).

Strategies, tried in order, each only when its inputs are configured:
  1. share link  - /shares/{u!...}/driveItem
  2. site search - parse the link as a document-library URL, resolve the
                   site, search each document library for the file name
                   (application-only deployments; app identities often
                   cannot open a personal share link)
  3. shared with me - the signed-in user's "shared with me" listing,
                   matched by file name (bare file name, no link)

Failures are kept per strategy and attached to the final error.  When every
strategy failed and at least one was refused (401/403), the final error is
an AuthorizationError so the token fallback can rerun the whole operation
with another identity; otherwise it is a NotFoundError.  Transport errors
are not caught.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from .config import WorkbookConfig
from .errors import AuthorizationError, NotFoundError, ResolutionError, SyncError
from .graph_client import GraphClient

logger = logging.getLogger("prf_sync.locator")

SPREADSHEET_EXTENSIONS = (".xlsx", ".xlsm", ".xlsb", ".xls")

# SharePoint "typed" link prefixes: /:x:/r/, /:x:/s/, /:x:/g/ ...
_TYPED_LINK_PREFIX = re.compile(r"^/:[a-z]:/[a-z]/", re.IGNORECASE)


@dataclass
class LibraryUrl:
    """Pieces of a document-library URL."""
    host: str
    site_path: str
    file_name: Optional[str] = None


def parse_library_url(link: str) -> Optional[LibraryUrl]:
    """Extract host, site path and file name from a SharePoint/OneDrive URL.

    "https://contoso.sharepoint.com/:x:/r/sites/Finance/Shared%20Documents/PRF.xlsx?d=w1"
      -> LibraryUrl("contoso.sharepoint.com", "/sites/Finance", "PRF.xlsx")

    Returns None if the URL has no /sites/<name>, /teams/<name> or
    /personal/<name> segment.
    """
    if not link:
        return None
    parsed = urlparse(link.strip())
    if not parsed.netloc:
        return None

    path = _TYPED_LINK_PREFIX.sub("/", unquote(parsed.path))
    parts = [p for p in path.split("/") if p]

    site_path = None
    for idx, part in enumerate(parts[:-1]):
        if part.lower() in ("sites", "teams", "personal"):
            site_path = f"/{part}/{parts[idx + 1]}"
            break
    if not site_path:
        return None

    file_name = None
    if parts and parts[-1].lower().endswith(SPREADSHEET_EXTENSIONS):
        file_name = parts[-1]
    return LibraryUrl(host=parsed.netloc, site_path=site_path, file_name=file_name)


def _ids_from_item(item: dict) -> Tuple[str, str]:
    """(drive_id, item_id) of a driveItem, preferring its remoteItem facet."""
    remote = item.get("remoteItem") or {}
    if remote.get("id"):
        return (remote.get("parentReference", {}).get("driveId", ""), remote["id"])
    return (item.get("parentReference", {}).get("driveId", ""), item.get("id", ""))


class WorkbookLocator:
    """Resolves the configured workbook with an ordered list of strategies."""

    def __init__(self, client: GraphClient, workbook: WorkbookConfig, app_only_configured: bool):
        self.client = client
        self.workbook = workbook
        self.app_only_configured = app_only_configured

    def strategies(self) -> List[Tuple[str, Callable[[], Tuple[str, str]]]]:
        chain = []
        if self.workbook.share_link:
            chain.append(("share link", self._by_share_link))
            if self.app_only_configured:
                chain.append(("site search", self._by_site_search))
        elif self.workbook.file_name:
            chain.append(("shared with me", self._by_shared_with_me))
        return chain

    def resolve(self) -> Tuple[str, str]:
        """Return (drive_id, item_id) or raise NotFoundError."""
        attempts: List[Tuple[str, Exception]] = []
        for name, strategy in self.strategies():
            try:
                drive_id, item_id = strategy()
            except SyncError as e:
                logger.warning("Workbook lookup via %s failed: %s", name, e)
                attempts.append((name, e))
                continue
            logger.info("Workbook resolved via %s (drive=%s, item=%s).", name, drive_id, item_id)
            return drive_id, item_id

        tried = "; ".join(f"{n}: {e}" for n, e in attempts) or "no lookup configured"
        denied = [e for _, e in attempts if isinstance(e, AuthorizationError)]
        if denied:
            raise AuthorizationError(f"Workbook not accessible ({tried})",
                                     operation="resolve workbook",
                                     status=denied[-1].status, attempts=attempts)
        raise NotFoundError(f"Workbook not found ({tried})", operation="resolve workbook",
                            attempts=attempts)

    # ── Strategies ──

    def _by_share_link(self) -> Tuple[str, str]:
        item = self.client.get_shared_drive_item(self.workbook.share_link)
        drive_id, item_id = _ids_from_item(item)
        if not item_id:
            raise ResolutionError("Share link resolved to an item without an id.")
        return drive_id, item_id

    def _by_site_search(self) -> Tuple[str, str]:
        lib = parse_library_url(self.workbook.share_link)
        if lib is None:
            raise ResolutionError("Share link is not a document-library URL.")
        file_name = lib.file_name or self.workbook.file_name
        if not file_name:
            raise ResolutionError("No file name in link and none configured.")

        site = self.client.get_site(lib.host, lib.site_path)
        site_id = site.get("id")
        if not site_id:
            raise ResolutionError(f"Site {lib.host}{lib.site_path} has no id.")

        wanted = file_name.strip().lower()
        for drive in self.client.list_site_drives(site_id):
            drive_id = drive.get("id")
            if not drive_id:
                continue
            for item in self.client.search_drive(drive_id, file_name):
                if str(item.get("name", "")).strip().lower() == wanted:
                    found_drive = item.get("parentReference", {}).get("driveId") or drive_id
                    return found_drive, item["id"]
            logger.debug("'%s' not in library '%s'.", file_name, drive.get("name", drive_id))
        raise ResolutionError(f"'{file_name}' not found in any library of {lib.site_path}.")

    def _by_shared_with_me(self) -> Tuple[str, str]:
        wanted = self.workbook.file_name.strip().lower()
        for item in self.client.list_shared_with_me():
            name = str(item.get("name") or item.get("remoteItem", {}).get("name", ""))
            if wanted in name.lower():
                drive_id, item_id = _ids_from_item(item)
                if item_id:
                    return drive_id, item_id
        raise ResolutionError(f"No shared item matches '{self.workbook.file_name}'.")
