"""Unit tests for workbook location strategies."""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from prf_sync.config import WorkbookConfig
from prf_sync.errors import AuthorizationError, GraphApiError, NotFoundError
from prf_sync.locator import WorkbookLocator, parse_library_url

LINK = "https://contoso.sharepoint.com/:x:/r/sites/Finance/Shared%20Documents/PRF%20Register.xlsx?d=w1"


class StubGraph:
    """Answers the locator's Graph calls from canned data or errors."""

    def __init__(self, shared_item=None, site=None, drives=None, search=None, shared_with_me=None):
        self.shared_item = shared_item
        self.site = site
        self.drives = drives or []
        self.search = search or {}
        self.shared_with_me = shared_with_me or []
        self.calls = []

    @staticmethod
    def _answer(value):
        if isinstance(value, Exception):
            raise value
        return value

    def get_shared_drive_item(self, link):
        self.calls.append("share")
        return self._answer(self.shared_item)

    def get_site(self, host, site_path):
        self.calls.append(f"site {host}{site_path}")
        return self._answer(self.site)

    def list_site_drives(self, site_id):
        self.calls.append("drives")
        return self._answer(self.drives)

    def search_drive(self, drive_id, query):
        self.calls.append(f"search {drive_id} {query}")
        return self._answer(self.search.get(drive_id, []))

    def list_shared_with_me(self):
        self.calls.append("shared with me")
        return self._answer(self.shared_with_me)


def _denied(operation):
    return AuthorizationError(f"{operation} failed: 403", operation=operation, status=403)


class TestParseLibraryUrl(unittest.TestCase):
    def test_typed_link(self):
        lib = parse_library_url(LINK)
        self.assertEqual(lib.host, "contoso.sharepoint.com")
        self.assertEqual(lib.site_path, "/sites/Finance")
        self.assertEqual(lib.file_name, "PRF Register.xlsx")

    def test_personal_site_without_file(self):
        lib = parse_library_url("https://contoso-my.sharepoint.com/personal/ana_contoso_com/Documents")
        self.assertEqual(lib.site_path, "/personal/ana_contoso_com")
        self.assertIsNone(lib.file_name)

    def test_not_a_library_url(self):
        self.assertIsNone(parse_library_url("https://1drv.ms/x/s!AbCdEf"))
        self.assertIsNone(parse_library_url(""))
        self.assertIsNone(parse_library_url("not a url"))


class TestWorkbookLocator(unittest.TestCase):
    def test_share_link(self):
        graph = StubGraph(shared_item={"id": "item-1", "parentReference": {"driveId": "drive-1"}})
        locator = WorkbookLocator(graph, WorkbookConfig(share_link=LINK), app_only_configured=True)
        self.assertEqual(locator.resolve(), ("drive-1", "item-1"))
        self.assertEqual(graph.calls, ["share"])

    def test_remote_item_preferred(self):
        graph = StubGraph(shared_item={
            "id": "local", "parentReference": {"driveId": "mine"},
            "remoteItem": {"id": "remote", "parentReference": {"driveId": "theirs"}},
        })
        locator = WorkbookLocator(graph, WorkbookConfig(share_link=LINK), app_only_configured=False)
        self.assertEqual(locator.resolve(), ("theirs", "remote"))

    def test_site_search_after_share_link_denied(self):
        graph = StubGraph(
            shared_item=_denied("get driveItem by share link"),
            site={"id": "site-1"},
            drives=[{"id": "lib-a", "name": "Archive"}, {"id": "lib-b", "name": "Documents"}],
            search={
                "lib-a": [{"id": "x", "name": "PRF Register (old).xlsx"}],
                "lib-b": [{"id": "item-9", "name": "prf register.xlsx",
                           "parentReference": {"driveId": "lib-b"}}],
            },
        )
        locator = WorkbookLocator(graph, WorkbookConfig(share_link=LINK), app_only_configured=True)
        self.assertEqual(locator.resolve(), ("lib-b", "item-9"))
        self.assertIn("site contoso.sharepoint.com/sites/Finance", graph.calls)

    def test_no_site_search_without_app_only(self):
        graph = StubGraph(shared_item=_denied("get driveItem by share link"))
        locator = WorkbookLocator(graph, WorkbookConfig(share_link=LINK), app_only_configured=False)
        with self.assertRaises(AuthorizationError):
            locator.resolve()
        self.assertEqual(graph.calls, ["share"])

    def test_all_denied_is_authorization_error(self):
        graph = StubGraph(shared_item=_denied("get driveItem by share link"),
                          site=_denied("get site"))
        locator = WorkbookLocator(graph, WorkbookConfig(share_link=LINK), app_only_configured=True)
        with self.assertRaises(AuthorizationError) as ctx:
            locator.resolve()
        self.assertEqual(len(ctx.exception.attempts), 2)
        self.assertEqual(ctx.exception.status, 403)

    def test_not_found(self):
        graph = StubGraph(
            shared_item=GraphApiError("get driveItem failed: 404", status=404),
            site={"id": "site-1"}, drives=[{"id": "lib-a"}],
        )
        locator = WorkbookLocator(graph, WorkbookConfig(share_link=LINK), app_only_configured=True)
        with self.assertRaises(NotFoundError) as ctx:
            locator.resolve()
        self.assertEqual([name for name, _ in ctx.exception.attempts], ["share link", "site search"])

    def test_shared_with_me_by_file_name(self):
        graph = StubGraph(shared_with_me=[
            {"name": "Budget.xlsx", "remoteItem": {"id": "b", "parentReference": {"driveId": "d"}}},
            {"name": "PRF Register 2024.xlsx",
             "remoteItem": {"id": "item-5", "parentReference": {"driveId": "drive-5"}}},
        ])
        locator = WorkbookLocator(graph, WorkbookConfig(file_name="PRF Register"),
                                  app_only_configured=False)
        self.assertEqual(locator.resolve(), ("drive-5", "item-5"))

    def test_nothing_configured(self):
        locator = WorkbookLocator(StubGraph(), WorkbookConfig(), app_only_configured=True)
        with self.assertRaises(NotFoundError):
            locator.resolve()


if __name__ == "__main__":
    unittest.main()
