"""Microsoft Graph client for the drive and workbook endpoints PRF sync uses.

One instance wraps one bearer token.  The HTTP session is injected so tests
can substitute a fake transport.  Every non-2xx response is turned into an
AuthorizationError (401/403/invalid token) or a GraphApiError; transport
errors from ``requests`` propagate untouched.
"""

import base64
import logging
from typing import List, Optional
from urllib.parse import quote

import requests

from .errors import AuthorizationError, GraphApiError

logger = logging.getLogger("prf_sync.graph")

GRAPH_BASE = "https://graph.microsoft.com/v1.0"

_INVALID_TOKEN_MARKERS = ("invalidauthenticationtoken", "invalid auth token",
                          "access token is empty", "lifetime validation failed")
# App-only tokens calling /me get a 400 with this text; a delegated token works.
_DELEGATED_ONLY_MARKERS = ("only valid with delegated authentication",)


def encode_share_id(link: str) -> str:
    """Turn a sharing URL into a Graph share id: "u!" + unpadded base64url."""
    encoded = base64.urlsafe_b64encode(link.strip().encode("utf-8")).decode("ascii")
    return "u!" + encoded.rstrip("=")


def _sheet_segment(worksheet_name: str) -> str:
    escaped = worksheet_name.replace("'", "''")
    return f"worksheets('{quote(escaped, safe='')}')"


def _error_details(resp) -> tuple:
    """Return (code, message) from a Graph error body, tolerating non-JSON."""
    try:
        body = resp.json()
    except ValueError:
        return None, (resp.text or "").strip()[:300]
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        return err.get("code"), err.get("message", "")
    return None, str(body)[:300]


class GraphClient:
    """Thin wrapper over the Graph REST endpoints, bound to one access token."""

    def __init__(self, access_token: str, session: Optional[requests.Session] = None,
                 base_url: str = GRAPH_BASE):
        if not access_token:
            raise AuthorizationError("Access token is empty.")
        self.base_url = base_url.rstrip("/")
        self._token = access_token
        self._session = session or requests.Session()

    # ── Transport ──

    def _request(self, method: str, path: str, operation: str,
                 json_body: Optional[dict] = None, sheet: Optional[str] = None):
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self._token}", "Accept": "application/json"}
        if json_body is not None:
            headers["Content-Type"] = "application/json"

        logger.debug("%s %s", method, url)
        resp = self._session.request(method, url, headers=headers, json=json_body)

        if 200 <= resp.status_code < 300:
            if resp.status_code == 204 or not resp.content:
                return {}
            return resp.json()

        code, message = _error_details(resp)
        detail = f"{operation} failed: {resp.status_code}"
        if code or message:
            detail += f" {code or ''} {message or ''}".rstrip()

        text = f"{code or ''} {message or ''}".lower()
        markers = _INVALID_TOKEN_MARKERS + _DELEGATED_ONLY_MARKERS
        if resp.status_code in (401, 403) or any(m in text for m in markers):
            raise AuthorizationError(detail, operation=operation, sheet=sheet,
                                     status=resp.status_code)
        raise GraphApiError(detail, operation=operation, sheet=sheet,
                            status=resp.status_code, code=code)

    def _get(self, path: str, operation: str, sheet: Optional[str] = None):
        return self._request("GET", path, operation, sheet=sheet)

    def _get_paged(self, path: str, operation: str) -> List[dict]:
        """Follow @odata.nextLink and return every item in "value"."""
        items: List[dict] = []
        next_path: Optional[str] = path
        while next_path:
            page = self._get(next_path, operation)
            items.extend(page.get("value", []))
            next_path = page.get("@odata.nextLink")
        return items

    # ── Drive items ──

    def get_shared_drive_item(self, share_link: str) -> dict:
        share_id = encode_share_id(share_link)
        return self._get(f"/shares/{share_id}/driveItem", "get driveItem by share link")

    def get_site(self, host: str, site_path: str) -> dict:
        path = "/" + site_path.strip("/")
        return self._get(f"/sites/{host}:{quote(path)}", "get site")

    def list_site_drives(self, site_id: str) -> List[dict]:
        return self._get_paged(f"/sites/{site_id}/drives", "list site drives")

    def search_drive(self, drive_id: str, query: str) -> List[dict]:
        q = quote(query.replace("'", "''"), safe="")
        return self._get_paged(f"/drives/{drive_id}/root/search(q='{q}')", "search drive")

    def list_shared_with_me(self) -> List[dict]:
        return self._get_paged("/me/drive/sharedWithMe", "list shared with me")

    # ── Workbook ──

    def _workbook_path(self, drive_id: str, item_id: str) -> str:
        return f"/drives/{drive_id}/items/{item_id}/workbook"

    def list_worksheets(self, drive_id: str, item_id: str) -> List[dict]:
        return self._get_paged(f"{self._workbook_path(drive_id, item_id)}/worksheets",
                               "list worksheets")

    def get_used_range(self, drive_id: str, item_id: str, worksheet_name: str,
                       values_only: bool = True) -> dict:
        suffix = "usedRange(valuesOnly=true)" if values_only else "usedRange"
        path = f"{self._workbook_path(drive_id, item_id)}/{_sheet_segment(worksheet_name)}/{suffix}"
        return self._get(path, "get usedRange", sheet=worksheet_name)

    def update_range(self, drive_id: str, item_id: str, worksheet_name: str,
                     address: str, values: List[list]) -> dict:
        path = (f"{self._workbook_path(drive_id, item_id)}/{_sheet_segment(worksheet_name)}"
                f"/range(address='{address}')")
        return self._request("PATCH", path, "update range", json_body={"values": values},
                             sheet=worksheet_name)
