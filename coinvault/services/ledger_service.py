"""
coinvault.services.ledger_service — Balances & Append-Only Journal
===================================================================

The only path by which balances change.  Every public operation of the
engine composes these primitives inside one :func:`atomic_unit`:

1. ``lock_accounts`` — create missing accounts, then ``SELECT … FOR UPDATE``
   each row in ascending id order (the global lock order).
2. ``atomic_adjust`` — check, write the new balance, append a Transaction.
3. ``atomic_transfer`` — two adjusts under both locks.

Nothing here commits on its own; the surrounding unit commits or rolls back
everything together.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from coinvault.database.models import Account, CoinType, Transaction, TransactionKind
from coinvault.errors import (
    AccountNotFoundError,
    InsufficientBalanceError,
    InvalidInputError,
    LedgerBusyError,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_MS = 5000


# ---------------------------------------------------------------------------
# Atomic unit
# ---------------------------------------------------------------------------
@contextmanager
def atomic_unit(
    engine: Engine, *, lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS
) -> Iterator[Session]:
    """Yield a Session whose work commits all-or-nothing.

    Lock-wait timeouts, deadlocks and SQLite "database is locked" surface as
    :class:`LedgerBusyError`; any other exception rolls back and propagates
    unchanged.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        if engine.dialect.name == "postgresql":
            session.execute(text(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}"))
        yield session
        session.commit()
    except OperationalError as exc:
        session.rollback()
        logger.warning("Ledger unit aborted on lock contention: %s", exc.orig)
        raise LedgerBusyError(
            "Ledger is busy, retry with backoff",
            lock_timeout_ms=lock_timeout_ms,
        ) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def validate_coin_type(coin_type: str) -> CoinType:
    try:
        return CoinType(coin_type)
    except ValueError:
        raise InvalidInputError(
            f"Invalid coin type: {coin_type!r}",
            field="coin_type",
            allowed=[c.value for c in CoinType],
        ) from None


def validate_amount(amount: object, *, field: str = "amount", maximum: int | None = None) -> int:
    """Require a positive integer, optionally bounded above."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidInputError(
            "Amount must be a positive integer", field=field, value=amount
        )
    if maximum is not None and amount > maximum:
        raise InvalidInputError(
            f"Amount exceeds the maximum of {maximum}",
            field=field,
            value=amount,
            maximum=maximum,
        )
    return amount


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------
def _ensure_account(session: Session, account_id: str) -> None:
    """Insert an empty account unless one exists.

    A concurrent request may insert the same id first; the SAVEPOINT absorbs
    the resulting IntegrityError and the row it created is used instead.
    """
    exists = session.scalar(select(Account.id).where(Account.id == account_id))
    if exists is not None:
        return
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(Account(id=account_id))
            session.flush()
    except IntegrityError:
        logger.debug("Account %s created concurrently", account_id)


def lock_accounts(
    session: Session, *account_ids: str, create: bool = True
) -> dict[str, Account]:
    """Lock each account row in ascending id order and return them by id.

    With ``create=False`` a missing account raises
    :class:`AccountNotFoundError` instead of being created.
    """
    locked: dict[str, Account] = {}
    for account_id in sorted(set(account_ids)):
        if create:
            _ensure_account(session, account_id)
        account = session.scalar(
            select(Account)
            .where(Account.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if account is None:
            raise AccountNotFoundError(
                f"Account {account_id} not found", account_id=account_id
            )
        locked[account_id] = account
    return locked


def lock_account(session: Session, account_id: str, *, create: bool = True) -> Account:
    return lock_accounts(session, account_id, create=create)[account_id]


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------
def atomic_adjust(
    session: Session,
    account_id: str,
    coin_type: str,
    delta: int,
    *,
    description: str,
    reference_id: str | None,
    kind: TransactionKind | None = None,
) -> Transaction:
    """Apply *delta* to one balance and journal it.

    Returns the appended :class:`Transaction`; ``balance_after`` holds the
    post-adjustment balance.

    Raises
    ------
    InsufficientBalanceError
        If ``delta < 0`` and the balance would go negative.
    """
    coin = validate_coin_type(coin_type)
    if delta == 0:
        raise InvalidInputError("Adjustment delta must be non-zero", field="delta")

    account = lock_account(session, account_id)
    current = account.balance_of(coin)
    new_balance = current + delta
    if new_balance < 0:
        raise InsufficientBalanceError(
            f"Insufficient {coin.value} balance",
            coin_type=coin.value,
            current_balance=current,
            requested=-delta,
        )

    if kind is None:
        kind = TransactionKind.EARNED if delta > 0 else TransactionKind.SPENT

    account.set_balance(coin, new_balance)
    tx = Transaction(
        account_id=account_id,
        kind=kind.value,
        coin_type=coin.value,
        amount=abs(delta),
        balance_after=new_balance,
        description=description,
        reference_id=reference_id,
    )
    session.add(tx)
    session.flush()
    return tx


def atomic_transfer(
    session: Session,
    from_id: str,
    to_id: str,
    coin_type: str,
    amount: int,
    *,
    reference_id: str,
    debit_description: str = "Transfer sent",
    credit_description: str = "Transfer received",
    create_recipient: bool = True,
) -> tuple[Transaction, Transaction]:
    """Move *amount* between two accounts as one unit.

    Both rows are locked in ascending id order before either leg runs, so
    opposite-direction transfers cannot deadlock.  If either leg raises, the
    caller's unit rolls back and neither balance changes.
    """
    validate_amount(amount)
    if from_id == to_id:
        raise InvalidInputError("Cannot transfer to the same account", field="to_id")

    # Accounts are never deleted, so an unlocked existence check is stable.
    if not create_recipient and session.scalar(
        select(Account.id).where(Account.id == to_id)
    ) is None:
        raise AccountNotFoundError(f"Account {to_id} not found", account_id=to_id)
    lock_accounts(session, from_id, to_id)

    debit = atomic_adjust(
        session,
        from_id,
        coin_type,
        -amount,
        description=debit_description,
        reference_id=reference_id,
        kind=TransactionKind.SPENT,
    )
    credit = atomic_adjust(
        session,
        to_id,
        coin_type,
        amount,
        description=credit_description,
        reference_id=reference_id,
        kind=TransactionKind.EARNED,
    )
    return debit, credit


# ---------------------------------------------------------------------------
# Reads (no caching across requests)
# ---------------------------------------------------------------------------
def get_balances(engine: Engine, account_id: str) -> dict[str, int | str]:
    """Current balances and KYC status; zeros for an unknown account."""
    with Session(engine) as session:
        account = session.get(Account, account_id)
        if account is None:
            return {
                "account_id": account_id,
                "vicoin": 0,
                "icoin": 0,
                "kyc_status": "none",
            }
        return {
            "account_id": account_id,
            "vicoin": account.vicoin_balance,
            "icoin": account.icoin_balance,
            "kyc_status": account.kyc_status,
        }


def get_transactions(
    engine: Engine, account_id: str, *, limit: int = 50, offset: int = 0
) -> tuple[list[Transaction], int]:
    """Newest-first page of an account's journal plus the total count."""
    with Session(engine) as session:
        total = session.scalar(
            select(func.count())
            .select_from(Transaction)
            .where(Transaction.account_id == account_id)
        ) or 0
        rows = session.scalars(
            select(Transaction)
            .where(Transaction.account_id == account_id)
            .order_by(Transaction.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        for row in rows:
            session.expunge(row)
        return list(rows), total


def set_kyc_status(engine: Engine, account_id: str, status: str) -> None:
    """Record the compliance store's verdict for an account."""
    with Session(engine) as session, session.begin():
        account = session.get(Account, account_id)
        if account is None:
            account = Account(id=account_id)
            session.add(account)
        account.kyc_status = status
    logger.info("KYC status for %s set to %s", account_id, status)
