"""SyncService - the caller-facing entry points of PRF cloud sync.

Every call opens the workbook fresh: a token is acquired, the workbook is
resolved and the engines run against it.  The whole sequence runs inside
``TokenProvider.run`` so a refused application-only token reruns it once
with delegated auth.
"""

import logging
from typing import Optional

import requests

from .auth import READ, WRITE, TokenProvider
from .columns import build_header_map, locate_header
from .config import Config
from .errors import ConfigurationError, SyncError
from .graph_client import GraphClient
from .locator import WorkbookLocator
from .logging_setup import log_event
from .models import PRFRecord, PullOutcome, SyncOutcome
from .pull import PullEngine
from .store import PRFStore, build_engine
from .upsert import UpsertEngine
from .workbook import Workbook
from .worksheets import SINGLE

logger = logging.getLogger("prf_sync.service")


class SyncService:
    """Push, pull and access check for one configured workbook."""

    def __init__(self, config: Config, session: Optional[requests.Session] = None,
                 token_provider: Optional[TokenProvider] = None,
                 store: Optional[PRFStore] = None):
        self.config = config
        self.session = session or requests.Session()
        self.tokens = token_provider or TokenProvider(config.graph)
        self.store = store

    # ── Plumbing ──

    def _open_workbook(self, token: str) -> Workbook:
        client = GraphClient(token, session=self.session, base_url=self.config.graph.graph_base)
        locator = WorkbookLocator(client, self.config.workbook,
                                  self.config.graph.app_only_configured)
        drive_id, item_id = locator.resolve()
        return Workbook(client, drive_id, item_id)

    def _run(self, purpose: str, action: str, operation, **context):
        try:
            return self.tokens.run(purpose, operation)
        except SyncError as e:
            log_event(logger, "error", f"{action} failed: {e}", action=action,
                      operation=e.operation, sheet=e.sheet, **context)
            raise
        except requests.RequestException as e:
            log_event(logger, "error", f"{action} failed: {e}", action=action, **context)
            raise

    # ── Public API ──

    def sync_prf_to_excel(self, record: PRFRecord, mode: str = SINGLE,
                          year: Optional[int] = None) -> SyncOutcome:
        """Update the PRF's row in the workbook, or append it."""
        wb = self.config.workbook

        def push(token: str) -> SyncOutcome:
            book = self._open_workbook(token)
            engine = UpsertEngine(book, wb.worksheet_name, wb.sheet_token)
            return engine.upsert(record, mode=mode, year=year)

        return self._run(WRITE, "push", push, prf_no=record.prf_no, mode=mode, year=year)

    def pull_prf_from_excel(self, record: PRFRecord, mode: str = SINGLE,
                            year: Optional[int] = None) -> PullOutcome:
        """Read the PRF's row back, report differences, persist with COALESCE."""
        if self.store is None:
            raise ConfigurationError("No PRF store configured for pull.", operation="pull")
        wb = self.config.workbook

        def pull(token: str) -> PullOutcome:
            book = self._open_workbook(token)
            engine = PullEngine(book, self.store, wb.worksheet_name, wb.sheet_token)
            return engine.pull(record, mode=mode, year=year)

        return self._run(READ, "pull", pull, prf_no=record.prf_no, mode=mode, year=year)

    def test_access(self) -> dict:
        """Resolve the workbook and read the configured worksheet's header."""
        sheet = self.config.workbook.worksheet_name

        def probe(token: str) -> dict:
            book = self._open_workbook(token)
            names = [ws.name for ws in book.worksheets()]
            used = book.used_range(sheet)
            header_index = locate_header(used.values) if used.values else 0
            header = list(used.values[header_index]) if used.values else []
            header_map = build_header_map(header)
            logger.info("Access OK: %d worksheets, header at row %d of '%s' (%d fields mapped).",
                        len(names), header_index, sheet, len(header_map))
            return {
                "driveId": book.drive_id,
                "itemId": book.item_id,
                "worksheets": names,
                "worksheet": sheet,
                "headerRowIndex": header_index,
                "sampleHeader": header,
            }

        return self._run(READ, "test access", probe, worksheet=sheet)


def build_service(cfg: Config, session: Optional[requests.Session] = None) -> SyncService:
    """SyncService wired to the configured database."""
    store = PRFStore(build_engine(cfg.database.url))
    return SyncService(cfg, session=session, store=store)
