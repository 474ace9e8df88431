from __future__ import annotations

import sqlite3
import hashlib
import hmac
import secrets
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from bsm.domain.errors import InsufficientStockError
from bsm.domain.models import (
    WATER_BOTTLE,
    DeliveryRecord,
    Expense,
    InventoryPurchase,
    Sale,
    User,
)

_SALE_COLUMNS = """
    id, product_type, bottle_size, quantity, price_per_unit, total_amount,
    amount_paid, amount_pending, payment_mode, payment_status, customer_name,
    notes, created_at
"""

_INVENTORY_COLUMNS = """
    id, product_type, bottle_size, quantity, remaining, amount_paid, unit_cost, notes, created_at
"""


def _sale_from_row(r) -> Sale:
    return Sale(
        id=int(r[0]),
        product_type=str(r[1]),
        bottle_size=(r[2] if r[2] is not None else None),
        quantity=int(r[3]),
        price_per_unit=float(r[4]),
        total_amount=float(r[5]),
        amount_paid=float(r[6]),
        amount_pending=float(r[7]),
        payment_mode=str(r[8]),
        payment_status=str(r[9]),
        customer_name=(r[10] if r[10] is not None else None),
        notes=(r[11] if r[11] is not None else None),
        created_at=str(r[12]),
    )


def _purchase_from_row(r) -> InventoryPurchase:
    return InventoryPurchase(
        id=int(r[0]),
        product_type=str(r[1]),
        bottle_size=(r[2] if r[2] is not None else None),
        quantity=int(r[3]),
        remaining=int(r[4]),
        amount_paid=float(r[5]),
        unit_cost=(float(r[6]) if r[6] is not None else None),
        notes=(r[7] if r[7] is not None else None),
        created_at=str(r[8]),
    )


def _sku_filter(product_type: Optional[str], bottle_size: Optional[str]) -> tuple[str, list]:
    clauses: list[str] = []
    params: list = []
    if product_type:
        clauses.append("product_type = ?")
        params.append(product_type)
    if bottle_size and product_type in (None, WATER_BOTTLE):
        clauses.append("bottle_size = ?")
        params.append(bottle_size)
    where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
    return where, params


class SqliteRepository:
    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_base),
                (2, self._migration_v2_auth),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()

    def schema_version(self) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
        version = int(cur.fetchone()[0])
        conn.close()
        return version

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_base(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sales (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at TEXT NOT NULL,
            product_type TEXT NOT NULL CHECK(product_type IN ('waterbottle','coldrink')),
            bottle_size TEXT,
            quantity INTEGER NOT NULL CHECK(quantity > 0),
            price_per_unit REAL NOT NULL CHECK(price_per_unit >= 0),
            total_amount REAL NOT NULL CHECK(total_amount >= 0),
            amount_paid REAL NOT NULL CHECK(amount_paid >= 0),
            amount_pending REAL NOT NULL CHECK(amount_pending >= 0),
            payment_mode TEXT NOT NULL CHECK(payment_mode IN ('cash','online')),
            payment_status TEXT NOT NULL CHECK(payment_status IN ('paid','pending','lending')),
            customer_name TEXT,
            notes TEXT
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS inventory (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at TEXT NOT NULL,
            product_type TEXT NOT NULL CHECK(product_type IN ('waterbottle','coldrink')),
            bottle_size TEXT,
            quantity INTEGER NOT NULL CHECK(quantity > 0),
            remaining INTEGER NOT NULL CHECK(remaining >= 0 AND remaining <= quantity),
            amount_paid REAL NOT NULL CHECK(amount_paid >= 0),
            unit_cost REAL CHECK(unit_cost IS NULL OR unit_cost >= 0),
            notes TEXT
        )
        """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS ix_inventory_sku ON inventory(product_type, bottle_size, created_at)")

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS expenses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at TEXT NOT NULL,
            category TEXT NOT NULL CHECK(category IN ('labour','miscellaneous')),
            amount REAL NOT NULL CHECK(amount > 0),
            reason TEXT NOT NULL,
            description TEXT
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS delivery_records (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at TEXT NOT NULL,
            image_url TEXT NOT NULL,
            image_public_id TEXT,
            notes TEXT,
            expire_at INTEGER NOT NULL
        )
        """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS ix_delivery_expire_at ON delivery_records(expire_at)")

    def _migration_v2_auth(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL UNIQUE,
                password TEXT NOT NULL,
                active INTEGER NOT NULL DEFAULT 1 CHECK(active IN (0,1)),
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS sessions (
                token_hash TEXT PRIMARY KEY,
                user_id INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
            )
            """
        )
        self._add_column_if_missing(cur, "users", "failed_attempts", "INTEGER NOT NULL DEFAULT 0")
        self._add_column_if_missing(cur, "users", "locked_until", "TEXT")

    def _add_column_if_missing(self, cur: sqlite3.Cursor, table: str, column: str, definition: str) -> None:
        cur.execute(f"PRAGMA table_info({table})")
        cols = {str(r[1]) for r in cur.fetchall()}
        if column in cols:
            return
        cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")

    # ---------- Users ----------
    def _get_user_row(self, cur: sqlite3.Cursor, email: str):
        cur.execute(
            """
            SELECT id, email, active, password, COALESCE(failed_attempts, 0), locked_until
            FROM users
            WHERE active=1 AND email=?
            """,
            (email,),
        )
        return cur.fetchone()

    def get_user_security_state(self, email: str) -> tuple[int, Optional[str]] | None:
        conn = self._conn()
        cur = conn.cursor()
        row = self._get_user_row(cur, email)
        conn.close()
        if not row:
            return None
        return int(row[4]), (str(row[5]) if row[5] is not None else None)

    def record_login_failure(self, email: str, max_attempts: int, locked_until_iso: str) -> tuple[int, Optional[str]]:
        conn = self._conn()
        cur = conn.cursor()
        row = self._get_user_row(cur, email)
        if not row:
            conn.close()
            return 0, None

        attempts = int(row[4]) + 1
        locked_until = None
        if attempts >= int(max_attempts):
            attempts = 0
            locked_until = locked_until_iso
            cur.execute(
                "UPDATE users SET failed_attempts=?, locked_until=? WHERE id=?",
                (attempts, locked_until, int(row[0])),
            )
        else:
            cur.execute("UPDATE users SET failed_attempts=? WHERE id=?", (attempts, int(row[0])))
        conn.commit()
        conn.close()
        return attempts, locked_until

    def clear_login_guard(self, user_id: int) -> None:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("UPDATE users SET failed_attempts=0, locked_until=NULL WHERE id=?", (int(user_id),))
        conn.commit()
        conn.close()

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        conn = self._conn()
        cur = conn.cursor()
        row = self._get_user_row(cur, email)
        conn.close()
        if row and self._verify_password(str(row[3]), password):
            return User(id=int(row[0]), email=str(row[1]), active=int(row[2]))
        return None

    def create_user(self, email: str, password: str) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "INSERT INTO users (email, password, active) VALUES (?, ?, 1)",
            (email, self._hash_password(password)),
        )
        uid = int(cur.lastrowid)
        conn.commit()
        conn.close()
        return uid

    def change_user_password(self, user_id: int, current_password: str, new_password: str) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT password FROM users WHERE id=? AND active=1", (int(user_id),))
        row = cur.fetchone()
        if not row or not self._verify_password(str(row[0]), current_password):
            conn.close()
            return False

        cur.execute("UPDATE users SET password=? WHERE id=?", (self._hash_password(new_password), int(user_id)))
        # Every other session is invalidated on password change.
        cur.execute("DELETE FROM sessions WHERE user_id=?", (int(user_id),))
        conn.commit()
        conn.close()
        return True

    # ---------- Sessions ----------
    def create_session(self, token_hash: str, user_id: int, created_at: str, expires_at: str) -> None:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "INSERT INTO sessions (token_hash, user_id, created_at, expires_at) VALUES (?, ?, ?, ?)",
            (token_hash, int(user_id), created_at, expires_at),
        )
        conn.commit()
        conn.close()

    def get_session_user(self, token_hash: str, now_iso: str) -> Optional[User]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT u.id, u.email, u.active
            FROM sessions s
            JOIN users u ON u.id = s.user_id
            WHERE s.token_hash = ? AND s.expires_at > ? AND u.active = 1
            """,
            (token_hash, now_iso),
        )
        r = cur.fetchone()
        conn.close()
        if not r:
            return None
        return User(id=int(r[0]), email=str(r[1]), active=int(r[2]))

    def delete_session(self, token_hash: str) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("DELETE FROM sessions WHERE token_hash=?", (token_hash,))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    def purge_expired_sessions(self, now_iso: str) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("DELETE FROM sessions WHERE expires_at <= ?", (now_iso,))
        removed = int(cur.rowcount)
        conn.commit()
        conn.close()
        return removed

    # ---------- Inventory ----------
    def add_stock_batch(
        self,
        created_at: str,
        product_type: str,
        bottle_size: Optional[str],
        quantity: int,
        amount_paid: float,
        unit_cost: Optional[float],
        notes: Optional[str],
    ) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO inventory (created_at, product_type, bottle_size, quantity, remaining, amount_paid, unit_cost, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (
                created_at,
                product_type,
                bottle_size,
                int(quantity),
                int(quantity),
                float(amount_paid),
                (float(unit_cost) if unit_cost is not None else None),
                notes,
            ),
        )
        batch_id = int(cur.lastrowid)
        conn.commit()
        conn.close()
        return batch_id

    def list_inventory(self, product_type: Optional[str] = None, bottle_size: Optional[str] = None) -> list[InventoryPurchase]:
        where, params = _sku_filter(product_type, bottle_size)
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_INVENTORY_COLUMNS} FROM inventory {where} ORDER BY created_at DESC, id DESC",
            params,
        )
        rows = cur.fetchall()
        conn.close()
        return [_purchase_from_row(r) for r in rows]

    def get_stock_batch(self, batch_id: int) -> Optional[InventoryPurchase]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_INVENTORY_COLUMNS} FROM inventory WHERE id = ?", (int(batch_id),))
        r = cur.fetchone()
        conn.close()
        return _purchase_from_row(r) if r else None

    def available_stock(self, product_type: str, bottle_size: Optional[str]) -> int:
        conn = self._conn()
        cur = conn.cursor()
        rows = self._matching_batches(cur, product_type, bottle_size)
        conn.close()
        return sum(int(r[1]) for r in rows)

    def _matching_batches(self, cur: sqlite3.Cursor, product_type: str, bottle_size: Optional[str]) -> list[tuple[int, int]]:
        if product_type == WATER_BOTTLE:
            cur.execute(
                """
                SELECT id, remaining FROM inventory
                WHERE product_type = ? AND bottle_size = ? AND remaining > 0
                ORDER BY created_at ASC, id ASC
                """,
                (product_type, bottle_size),
            )
        else:
            cur.execute(
                """
                SELECT id, remaining FROM inventory
                WHERE product_type = ? AND remaining > 0
                ORDER BY created_at ASC, id ASC
                """,
                (product_type,),
            )
        return [(int(r[0]), int(r[1])) for r in cur.fetchall()]

    # ---------- Sales ----------
    def create_sale_with_depletion(
        self,
        created_at: str,
        product_type: str,
        bottle_size: Optional[str],
        quantity: int,
        price_per_unit: float,
        total_amount: float,
        amount_paid: float,
        amount_pending: float,
        payment_mode: str,
        payment_status: str,
        customer_name: Optional[str],
        notes: Optional[str],
    ) -> int:
        """
        Stock check, sale insert and batch depletion in one write transaction.

        BEGIN IMMEDIATE takes the write lock before the availability read, so two
        concurrent sales for the same SKU cannot both pass the check.
        """
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute("BEGIN IMMEDIATE")
            batches = self._matching_batches(cur, product_type, bottle_size)
            available = sum(on_hand for _id, on_hand in batches)
            if available < int(quantity):
                raise InsufficientStockError(available)

            cur.execute(
                """
                INSERT INTO sales (
                    created_at, product_type, bottle_size, quantity, price_per_unit, total_amount,
                    amount_paid, amount_pending, payment_mode, payment_status, customer_name, notes
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    created_at,
                    product_type,
                    bottle_size,
                    int(quantity),
                    float(price_per_unit),
                    float(total_amount),
                    float(amount_paid),
                    float(amount_pending),
                    payment_mode,
                    payment_status,
                    customer_name,
                    notes,
                ),
            )
            sale_id = int(cur.lastrowid)

            # oldest batch first
            to_deplete = int(quantity)
            for batch_id, on_hand in batches:
                if to_deplete <= 0:
                    break
                take = min(on_hand, to_deplete)
                cur.execute(
                    "UPDATE inventory SET remaining = remaining - ? WHERE id = ? AND remaining >= ?",
                    (take, batch_id, take),
                )
                to_deplete -= take

            conn.commit()
            return sale_id
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_sales(self, payment_status: Optional[str] = None) -> list[Sale]:
        conn = self._conn()
        cur = conn.cursor()
        if payment_status:
            cur.execute(
                f"SELECT {_SALE_COLUMNS} FROM sales WHERE payment_status = ? ORDER BY created_at DESC, id DESC",
                (payment_status,),
            )
        else:
            cur.execute(f"SELECT {_SALE_COLUMNS} FROM sales ORDER BY created_at DESC, id DESC")
        rows = cur.fetchall()
        conn.close()
        return [_sale_from_row(r) for r in rows]

    def get_sale(self, sale_id: int) -> Optional[Sale]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_SALE_COLUMNS} FROM sales WHERE id = ?", (int(sale_id),))
        r = cur.fetchone()
        conn.close()
        return _sale_from_row(r) if r else None

    def apply_payment(self, sale_id: int, amount: float) -> bool:
        """Conditional single-row update; False when the amount no longer fits the balance."""
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            UPDATE sales
            SET amount_paid = ROUND(amount_paid + ?, 2),
                amount_pending = ROUND(amount_pending - ?, 2),
                payment_status = CASE
                    WHEN ROUND(amount_pending - ?, 2) <= 0 THEN 'paid'
                    ELSE payment_status
                END
            WHERE id = ?
              AND ? > 0
              AND ? <= amount_pending
              AND payment_status IN ('pending', 'lending')
            """,
            (float(amount), float(amount), float(amount), int(sale_id), float(amount), float(amount)),
        )
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    def mark_sale_pending(self, sale_id: int) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "UPDATE sales SET payment_status='pending' WHERE id=? AND payment_status='lending'",
            (int(sale_id),),
        )
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    # ---------- Expenses ----------
    def add_expense(self, created_at: str, category: str, amount: float, reason: str, description: Optional[str]) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO expenses (created_at, category, amount, reason, description)
            VALUES (?, ?, ?, ?, ?)
        """,
            (created_at, category, float(amount), reason, description),
        )
        eid = int(cur.lastrowid)
        conn.commit()
        conn.close()
        return eid

    def list_expenses(self, category: Optional[str] = None) -> list[Expense]:
        conn = self._conn()
        cur = conn.cursor()
        if category:
            cur.execute(
                """
                SELECT id, category, amount, reason, description, created_at
                FROM expenses WHERE category = ?
                ORDER BY created_at DESC, id DESC
                """,
                (category,),
            )
        else:
            cur.execute(
                """
                SELECT id, category, amount, reason, description, created_at
                FROM expenses
                ORDER BY created_at DESC, id DESC
                """
            )
        rows = cur.fetchall()
        conn.close()
        return [
            Expense(
                id=int(r[0]),
                category=str(r[1]),
                amount=float(r[2]),
                reason=str(r[3]),
                description=(r[4] if r[4] is not None else None),
                created_at=str(r[5]),
            )
            for r in rows
        ]

    # ---------- Deliveries ----------
    def add_delivery_record(
        self, created_at: str, image_url: str, image_public_id: Optional[str], notes: Optional[str], expire_at: int
    ) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO delivery_records (created_at, image_url, image_public_id, notes, expire_at)
            VALUES (?, ?, ?, ?, ?)
        """,
            (created_at, image_url, image_public_id, notes, int(expire_at)),
        )
        rid = int(cur.lastrowid)
        conn.commit()
        conn.close()
        return rid

    def _delivery_rows(self, sql: str, params: tuple = ()) -> list[DeliveryRecord]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(sql, params)
        rows = cur.fetchall()
        conn.close()
        return [
            DeliveryRecord(
                id=int(r[0]),
                image_url=str(r[1]),
                image_public_id=(r[2] if r[2] else None),
                notes=(r[3] if r[3] is not None else None),
                created_at=str(r[4]),
                expire_at=int(r[5]),
            )
            for r in rows
        ]

    def list_delivery_records(self) -> list[DeliveryRecord]:
        return self._delivery_rows(
            """
            SELECT id, image_url, image_public_id, notes, created_at, expire_at
            FROM delivery_records
            ORDER BY created_at DESC, id DESC
            """
        )

    def get_delivery_record(self, record_id: int) -> Optional[DeliveryRecord]:
        rows = self._delivery_rows(
            """
            SELECT id, image_url, image_public_id, notes, created_at, expire_at
            FROM delivery_records
            WHERE id = ?
            """,
            (int(record_id),),
        )
        return rows[0] if rows else None

    def list_expired_delivery_records(self, now_ms: int) -> list[DeliveryRecord]:
        return self._delivery_rows(
            """
            SELECT id, image_url, image_public_id, notes, created_at, expire_at
            FROM delivery_records
            WHERE expire_at <= ?
            ORDER BY expire_at ASC, id ASC
            """,
            (int(now_ms),),
        )

    def delete_delivery_record(self, record_id: int) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("DELETE FROM delivery_records WHERE id = ?", (int(record_id),))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    @staticmethod
    def _hash_password(password: str, *, rounds: int = 200_000, salt: str | None = None) -> str:
        salt = salt or secrets.token_hex(16)
        digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), rounds).hex()
        return f"pbkdf2_sha256${rounds}${salt}${digest}"

    @staticmethod
    def _verify_password(stored: str, provided: str) -> bool:
        if not stored.startswith("pbkdf2_sha256$"):
            return False
        try:
            _algo, rounds_s, salt, digest = stored.split("$", 3)
            rounds = int(rounds_s)
            candidate = hashlib.pbkdf2_hmac(
                "sha256",
                provided.encode("utf-8"),
                bytes.fromhex(salt),
                rounds,
            ).hex()
        except ValueError:
            return False
        return hmac.compare_digest(candidate, digest)
