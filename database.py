import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from config import DB_NAME, DATE_FORMAT, timestamp
from logger import log_error, log_info, log_warning

SCHEMA = """
CREATE TABLE IF NOT EXISTS loans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    amount_given INTEGER NOT NULL,
    amount_paid INTEGER NOT NULL DEFAULT 0,
    date TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS purchases (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    supplier TEXT NOT NULL,
    amount_total INTEGER NOT NULL,
    amount_paid INTEGER NOT NULL DEFAULT 0,
    date TEXT NOT NULL,
    created_at TEXT NOT NULL
);
"""

def create_connection(db_name: str = DB_NAME) -> sqlite3.Connection:
    conn = sqlite3.connect(db_name)
    conn.row_factory = sqlite3.Row
    return conn

def create_tables() -> None:
    try:
        with create_connection() as conn:
            conn.executescript(SCHEMA)
            conn.commit()
        log_info("Database schema ensured.")
    except sqlite3.Error as exc:
        log_error("Failed to create schema: %s", exc)
        raise

def _normalize_date(date: Optional[str] = None) -> str:
    if date:
        return date
    return datetime.now().strftime(DATE_FORMAT)

def _check_paid(kind: str, primary: int, paid: int) -> None:
    if paid > primary:
        log_warning("%s paid amount %s exceeds the recorded amount %s", kind, paid, primary)

def add_loan(name: str, amount_given: int, amount_paid: int = 0, date: Optional[str] = None) -> int:
    _check_paid("Loan", amount_given, amount_paid)
    payload = {
        "name": name,
        "amount_given": amount_given,
        "amount_paid": amount_paid,
        "date": _normalize_date(date),
        "created_at": timestamp(),
    }
    try:
        with create_connection() as conn:
            cur = conn.execute(
                """
                INSERT INTO loans (name, amount_given, amount_paid, date, created_at)
                VALUES (:name, :amount_given, :amount_paid, :date, :created_at)
                """,
                payload,
            )
            conn.commit()
            loan_id = cur.lastrowid
        log_info("Inserted loan %s -> %s", loan_id, payload)
        return loan_id
    except sqlite3.Error as exc:
        log_error("Failed to insert loan: %s", exc)
        raise

def add_purchase(supplier: str, amount_total: int, amount_paid: int = 0, date: Optional[str] = None) -> int:
    _check_paid("Purchase", amount_total, amount_paid)
    payload = {
        "supplier": supplier,
        "amount_total": amount_total,
        "amount_paid": amount_paid,
        "date": _normalize_date(date),
        "created_at": timestamp(),
    }
    try:
        with create_connection() as conn:
            cur = conn.execute(
                """
                INSERT INTO purchases (supplier, amount_total, amount_paid, date, created_at)
                VALUES (:supplier, :amount_total, :amount_paid, :date, :created_at)
                """,
                payload,
            )
            conn.commit()
            purchase_id = cur.lastrowid
        log_info("Inserted purchase %s -> %s", purchase_id, payload)
        return purchase_id
    except sqlite3.Error as exc:
        log_error("Failed to insert purchase: %s", exc)
        raise

def get_recent_loans(limit: int = 5) -> List[Dict[str, Any]]:
    try:
        with create_connection() as conn:
            cur = conn.execute(
                """
                SELECT id, name, amount_given, amount_paid, date
                FROM loans
                ORDER BY date DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            )
            rows = cur.fetchall()
        return [dict(row) for row in rows]
    except sqlite3.Error as exc:
        log_error("Failed to fetch recent loans: %s", exc)
        raise

def get_recent_purchases(limit: int = 5) -> List[Dict[str, Any]]:
    try:
        with create_connection() as conn:
            cur = conn.execute(
                """
                SELECT id, supplier, amount_total, amount_paid, date
                FROM purchases
                ORDER BY date DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            )
            rows = cur.fetchall()
        return [dict(row) for row in rows]
    except sqlite3.Error as exc:
        log_error("Failed to fetch recent purchases: %s", exc)
        raise
