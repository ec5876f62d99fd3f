"""PRF record store - the two database touch points of the sync.

Lookup by PRF number, and the single COALESCE update a pull performs.
The rest of the PRF table belongs to the application's CRUD layer.
"""

import logging
import os
from typing import Dict, Optional

from sqlalchemy import (
    Column, Date, DateTime, Float, Integer, MetaData, String, Table, Text,
    create_engine, func, literal, select, update,
)
from sqlalchemy.engine import Engine, make_url

from .models import RECORD_ATTRS, PRFRecord

logger = logging.getLogger("prf_sync.store")

metadata = MetaData()

prf_table = Table(
    "PRF",
    metadata,
    Column("PRFID", Integer, primary_key=True),
    Column("PRFNo", String(50), index=True),
    Column("DateSubmit", Date),
    Column("SubmitBy", String(200)),
    Column("SumDescriptionRequested", Text),
    Column("Description", Text),
    Column("PurchaseCostCode", String(100)),
    Column("RequiredFor", Text),
    Column("BudgetYear", Integer),
    Column("RequestedAmount", Float),
    Column("Status", String(100)),
    Column("UpdatedAt", DateTime, server_default=func.current_timestamp()),
)

# Fields a pull may write; the business key is never overwritten.
PULL_FIELDS = tuple(name for name in RECORD_ATTRS if name != "PRFNo")


def build_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        database = make_url(url).database
        if database and database != ":memory:":
            directory = os.path.dirname(database)
            if directory:
                os.makedirs(directory, exist_ok=True)
    return create_engine(url, connect_args=connect_args, future=True)


def row_to_record(row) -> PRFRecord:
    m = row._mapping
    kwargs = {attr: m[col] for col, attr in RECORD_ATTRS.items()}
    return PRFRecord(prf_id=m["PRFID"], **kwargs)


class PRFStore:
    """SQLAlchemy Core access to the PRF table."""

    def __init__(self, engine: Engine, table: Table = prf_table):
        self.engine = engine
        self.table = table

    def find_by_prf_no(self, prf_no: str) -> Optional[PRFRecord]:
        stmt = select(self.table).where(self.table.c.PRFNo == prf_no.strip()).limit(1)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return row_to_record(row) if row is not None else None

    def get(self, prf_id: int) -> Optional[PRFRecord]:
        stmt = select(self.table).where(self.table.c.PRFID == prf_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return row_to_record(row) if row is not None else None

    def apply_pull(self, prf_id: int, values: Dict[str, object]) -> bool:
        """Write pulled values with COALESCE(new, existing) in one UPDATE.

        A None in ``values`` keeps the stored value.  Only fields in
        PULL_FIELDS are written.  Returns True if a row was updated.
        """
        cols = self.table.c
        assignments = {
            cols[name]: func.coalesce(literal(values[name], cols[name].type), cols[name])
            for name in PULL_FIELDS if name in values
        }
        if not assignments:
            logger.debug("Nothing to write for PRFID %s.", prf_id)
            return False
        assignments[cols.UpdatedAt] = func.current_timestamp()

        stmt = update(self.table).where(cols.PRFID == prf_id).values(assignments)
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        logger.debug("Pull UPDATE for PRFID %s touched %d row(s).", prf_id, result.rowcount)
        return result.rowcount > 0
