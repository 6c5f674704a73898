"""
Example 02: Transactions

This example shows that audit rows and cache updates join the caller's
transaction: a rollback undoes the change, its audit rows and its cache
entry together.
"""

import tempfile
from dataclasses import dataclass
from decimal import Decimal

from row_orm import ConnectionConfig, Engine, StatementExecutionFailure, column


@dataclass
class Account:
    id: int | None = column(
        primary_key=True,
        auto=True,
        definition="integer PRIMARY KEY AUTOINCREMENT",
        default=None,
    )
    owner: str = ""
    balance: Decimal = column(precision=12, scale=2, default=Decimal("0"))


def main():
    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    engine = Engine.from_config(ConnectionConfig(driver="sqlite", database=db_path))
    engine.audit.create_table()
    engine.create_table(Account)

    alice = Account(owner="alice", balance=Decimal("100.00"))
    bob = Account(owner="bob", balance=Decimal("20.00"))
    engine.insert([alice, bob])

    print("=== Transaction Management ===\n")

    # Example 1: Successful transfer
    print("1. Successful transaction:")
    with engine.transaction() as ctx:
        alice.balance -= Decimal("30.00")
        bob.balance += Decimal("30.00")
        engine.update([alice, bob], ctx)
    print(f"   Balances after commit: {engine.query('SELECT owner, balance FROM account')}\n")

    # Example 2: Failure inside the transaction rolls everything back
    print("2. Transaction with error (automatic rollback):")
    try:
        with engine.transaction() as ctx:
            alice.balance -= Decimal("500.00")
            engine.update(alice, ctx)
            engine.execute_update("UPDATE missing_table SET x = 1", ctx=ctx)
    except StatementExecutionFailure as e:
        print(f"   Rolled back: {e}")
    cached = engine.cache.get(Account, alice.id)
    print(f"   Cached balance still {cached.balance}")
    print(f"   Stored balance still {engine.get(Account, alice.id, bypass_cache=True).balance}\n")

    # Example 3: Explicit commit / rollback
    print("3. Explicit rollback:")
    ctx = engine.start_transaction()
    engine.delete(bob, ctx)
    engine.rollback(ctx)
    print(f"   Bob still exists: {engine.get(Account, bob.id) is not None}")

    engine.close()


if __name__ == "__main__":
    main()
