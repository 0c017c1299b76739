"""
SQLite Database for the Contribution Ledger
Provides persistent storage for data points, categories, reward balances,
treasury state and the event log.

Every helper takes an open connection so a manager operation can run all of
its reads and writes inside one transaction.
"""

import sqlite3
import json
import os
from typing import Optional, List, Dict, Any, Iterable
from contextlib import contextmanager

from ledger.models import utc_now


def get_db_path(db_path: str) -> str:
    """Get database path, ensuring directory exists."""
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)
    return db_path


# Seconds a writer waits for another connection's write lock
BUSY_TIMEOUT = 30.0


@contextmanager
def get_connection(db_path: str, write: bool = False):
    """
    Context manager for database connections. One connection is one transaction.

    Write transactions start with BEGIN IMMEDIATE, so the write lock is held
    from the first read; other connections writing the same file wait.
    """
    conn = sqlite3.connect(get_db_path(db_path), timeout=BUSY_TIMEOUT, isolation_level=None)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
        yield conn
        conn.execute("COMMIT")
    except Exception:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


def init_database(db_path: str, owner: str, seed_categories: Iterable[str] = ()) -> str:
    """
    Initialize the database schema.

    The owner and the seed categories are written only when the ledger is
    created. Returns the owner stored in the ledger.
    """
    with get_connection(db_path, write=True) as conn:
        cursor = conn.cursor()

        # Ledger state (singleton row)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS ledger_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                owner TEXT NOT NULL,
                total_data_points INTEGER NOT NULL DEFAULT 0,
                treasury_balance INTEGER NOT NULL DEFAULT 0,
                nominal_pool INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT
            )
        """)

        # Categories table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS categories (
                name TEXT PRIMARY KEY,
                created_at TEXT NOT NULL
            )
        """)

        # Data points table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS data_points (
                id INTEGER PRIMARY KEY,
                contributor TEXT NOT NULL,
                fingerprint TEXT NOT NULL,
                category TEXT NOT NULL,
                submitted_at TEXT NOT NULL,
                reward INTEGER NOT NULL,
                verified INTEGER NOT NULL DEFAULT 0,
                verified_at TEXT,
                verified_by TEXT
            )
        """)

        # Reward balances table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS reward_balances (
                contributor TEXT PRIMARY KEY,
                balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
                total_earned INTEGER NOT NULL DEFAULT 0,
                total_claimed INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT
            )
        """)

        # Treasury transactions table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS treasury_transactions (
                tx_id INTEGER PRIMARY KEY AUTOINCREMENT,
                tx_type TEXT NOT NULL,  -- 'deposit', 'payout', 'refund'
                amount INTEGER NOT NULL,
                wallet TEXT,
                description TEXT,
                created_at TEXT NOT NULL
            )
        """)

        # Event log table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS ledger_events (
                event_id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_type TEXT NOT NULL,
                payload TEXT NOT NULL,  -- JSON object
                created_at TEXT NOT NULL
            )
        """)

        # Initialize ledger state if empty
        cursor.execute("SELECT owner FROM ledger_state WHERE id = 1")
        row = cursor.fetchone()
        if row is None:
            now = utc_now()
            cursor.execute("""
                INSERT INTO ledger_state (id, owner, created_at, updated_at)
                VALUES (1, ?, ?, ?)
            """, (owner, now, now))
            for name in seed_categories:
                cursor.execute(
                    "INSERT OR IGNORE INTO categories (name, created_at) VALUES (?, ?)",
                    (name, now)
                )
            stored_owner = owner
        else:
            stored_owner = row["owner"]

        # Create indexes
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_data_points_contributor ON data_points(contributor)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_events_type ON ledger_events(event_type)")

        return stored_owner


# ==================== LEDGER STATE ====================

def get_state(conn: sqlite3.Connection) -> Dict[str, Any]:
    """Get the ledger state row."""
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM ledger_state WHERE id = 1")
    return dict(cursor.fetchone())


def update_state(conn: sqlite3.Connection, updates: Dict[str, Any]) -> bool:
    """Update the ledger state row."""
    cursor = conn.cursor()
    updates["updated_at"] = utc_now()

    set_clause = ", ".join([f"{k} = ?" for k in updates.keys()])
    values = list(updates.values())

    cursor.execute(f"UPDATE ledger_state SET {set_clause} WHERE id = 1", values)
    return cursor.rowcount > 0


# ==================== CATEGORY OPERATIONS ====================

def category_exists(conn: sqlite3.Connection, name: str) -> bool:
    cursor = conn.cursor()
    cursor.execute("SELECT COUNT(*) FROM categories WHERE name = ?", (name,))
    return cursor.fetchone()[0] > 0


def insert_category(conn: sqlite3.Connection, name: str) -> None:
    cursor = conn.cursor()
    cursor.execute(
        "INSERT INTO categories (name, created_at) VALUES (?, ?)",
        (name, utc_now())
    )


def get_categories(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    """Get all categories in insertion order."""
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM categories ORDER BY rowid")
    return [dict(row) for row in cursor.fetchall()]


# ==================== DATA POINT OPERATIONS ====================

def create_data_point(conn: sqlite3.Connection, data: Dict[str, Any]) -> int:
    """Create a new data point."""
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO data_points (id, contributor, fingerprint, category, submitted_at, reward, verified)
        VALUES (?, ?, ?, ?, ?, ?, 0)
    """, (
        data["id"],
        data["contributor"],
        data["fingerprint"],
        data["category"],
        data["submitted_at"],
        data["reward"]
    ))
    return data["id"]


def get_data_point(conn: sqlite3.Connection, data_id: int) -> Optional[Dict[str, Any]]:
    """Get a data point by ID."""
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM data_points WHERE id = ?", (data_id,))
    row = cursor.fetchone()
    if row:
        return dict(row)
    return None


def mark_verified(conn: sqlite3.Connection, data_id: int, verifier: str) -> bool:
    """Flip a data point to verified. Only matches rows that are still unverified."""
    cursor = conn.cursor()
    cursor.execute("""
        UPDATE data_points SET verified = 1, verified_at = ?, verified_by = ?
        WHERE id = ? AND verified = 0
    """, (utc_now(), verifier, data_id))
    return cursor.rowcount > 0


def get_contributor_data_ids(conn: sqlite3.Connection, contributor: str) -> List[int]:
    """Get ids submitted by a contributor, in submission order."""
    cursor = conn.cursor()
    cursor.execute("SELECT id FROM data_points WHERE contributor = ? ORDER BY id", (contributor,))
    return [row["id"] for row in cursor.fetchall()]


# ==================== REWARD BALANCE OPERATIONS ====================

def get_reward_record(conn: sqlite3.Connection, contributor: str) -> Optional[Dict[str, Any]]:
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM reward_balances WHERE contributor = ?", (contributor,))
    row = cursor.fetchone()
    if row:
        return dict(row)
    return None


def get_reward_balance(conn: sqlite3.Connection, contributor: str) -> int:
    record = get_reward_record(conn, contributor)
    return record["balance"] if record else 0


def credit_reward(conn: sqlite3.Connection, contributor: str, amount: int) -> None:
    """Add a verified reward to a contributor's balance."""
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO reward_balances (contributor, balance, total_earned, updated_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(contributor) DO UPDATE SET
            balance = balance + excluded.balance,
            total_earned = total_earned + excluded.total_earned,
            updated_at = excluded.updated_at
    """, (contributor, amount, amount, utc_now()))


def debit_all_rewards(conn: sqlite3.Connection, contributor: str, amount: int) -> bool:
    """Zero a contributor's balance after a claim of `amount`. False if the balance moved."""
    cursor = conn.cursor()
    cursor.execute("""
        UPDATE reward_balances
        SET balance = 0, total_claimed = total_claimed + ?, updated_at = ?
        WHERE contributor = ? AND balance = ?
    """, (amount, utc_now(), contributor, amount))
    return cursor.rowcount > 0


def restore_rewards(conn: sqlite3.Connection, contributor: str, amount: int) -> None:
    """Undo a claim whose payout failed."""
    cursor = conn.cursor()
    cursor.execute("""
        UPDATE reward_balances
        SET balance = balance + ?, total_claimed = total_claimed - ?, updated_at = ?
        WHERE contributor = ?
    """, (amount, amount, utc_now(), contributor))


def get_top_contributors(conn: sqlite3.Connection, limit: int = 10) -> List[Dict[str, Any]]:
    """Get top contributors by total earned."""
    cursor = conn.cursor()
    cursor.execute("""
        SELECT r.contributor, r.balance, r.total_earned, r.total_claimed,
               (SELECT COUNT(*) FROM data_points d WHERE d.contributor = r.contributor) AS submissions
        FROM reward_balances r
        WHERE r.total_earned > 0
        ORDER BY r.total_earned DESC, r.contributor
        LIMIT ?
    """, (limit,))
    return [dict(row) for row in cursor.fetchall()]


# ==================== TREASURY OPERATIONS ====================

def credit_treasury(conn: sqlite3.Connection, amount: int, funding: bool = False) -> None:
    """Add to the treasury balance; funding also counts towards the nominal pool."""
    cursor = conn.cursor()
    cursor.execute("""
        UPDATE ledger_state
        SET treasury_balance = treasury_balance + ?, nominal_pool = nominal_pool + ?, updated_at = ?
        WHERE id = 1
    """, (amount, amount if funding else 0, utc_now()))


def debit_treasury(conn: sqlite3.Connection, amount: int) -> bool:
    """Take `amount` out of the treasury. False if the balance is too low."""
    cursor = conn.cursor()
    cursor.execute("""
        UPDATE ledger_state
        SET treasury_balance = treasury_balance - ?, updated_at = ?
        WHERE id = 1 AND treasury_balance >= ?
    """, (amount, utc_now(), amount))
    return cursor.rowcount > 0


def add_treasury_transaction(conn: sqlite3.Connection, tx_data: Dict[str, Any]) -> int:
    """Add a treasury transaction record."""
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO treasury_transactions (tx_type, amount, wallet, description, created_at)
        VALUES (?, ?, ?, ?, ?)
    """, (
        tx_data["tx_type"],
        tx_data["amount"],
        tx_data.get("wallet"),
        tx_data.get("description"),
        tx_data.get("created_at", utc_now())
    ))
    return cursor.lastrowid


def get_treasury_transactions(conn: sqlite3.Connection, limit: int = 50) -> List[Dict[str, Any]]:
    """Get recent treasury transactions."""
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM treasury_transactions ORDER BY tx_id DESC LIMIT ?", (limit,))
    return [dict(row) for row in cursor.fetchall()]


# ==================== EVENT LOG ====================

def add_event(conn: sqlite3.Connection, event_type: str, payload: Dict[str, Any], created_at: str) -> int:
    cursor = conn.cursor()
    cursor.execute(
        "INSERT INTO ledger_events (event_type, payload, created_at) VALUES (?, ?, ?)",
        (event_type, json.dumps(payload), created_at)
    )
    return cursor.lastrowid


def get_events(conn: sqlite3.Connection, limit: int = 50, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """Get recent events, newest first."""
    cursor = conn.cursor()
    if event_type:
        cursor.execute(
            "SELECT * FROM ledger_events WHERE event_type = ? ORDER BY event_id DESC LIMIT ?",
            (event_type, limit)
        )
    else:
        cursor.execute("SELECT * FROM ledger_events ORDER BY event_id DESC LIMIT ?", (limit,))
    results = []
    for row in cursor.fetchall():
        data = dict(row)
        data["payload"] = json.loads(data["payload"])
        results.append(data)
    return results
