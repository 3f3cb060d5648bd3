from sqlalchemy.dialects import postgresql, sqlite

from models import db, BillSequence

BILL_WIDTH = 5


def insert_for(model):
    """Dialect-native INSERT so callers can use ``on_conflict_*`` clauses."""
    dialect = db.session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"upserts not supported on {dialect}")


def insert_ignore(model, values, index_elements):
    """INSERT that silently loses to an existing row; returns True if a row was written."""
    stmt = insert_for(model).values(**values)
    stmt = stmt.on_conflict_do_nothing(index_elements=index_elements)
    return db.session.execute(stmt).rowcount == 1


def next_bill_no(start=1, name="bill"):
    """Atomic increment-and-fetch of the bill counter.

    The first call seeds the counter at ``start``; every later call bumps it by
    one inside the database, so concurrent callers never share a number.
    """
    stmt = insert_for(BillSequence).values(name=name, counter=start)
    stmt = stmt.on_conflict_do_update(
        index_elements=[BillSequence.name],
        set_={"counter": BillSequence.counter + 1},
    ).returning(BillSequence.counter)
    return db.session.execute(stmt).scalar_one()


def peek_bill_no(start=1, name="bill"):
    """The number the next bill would receive, without consuming it."""
    row = db.session.get(BillSequence, name)
    return start if row is None else row.counter + 1


def format_bill_no(bill_no):
    return str(bill_no).zfill(BILL_WIDTH)
