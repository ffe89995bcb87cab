# src/db/crud.py
from __future__ import annotations

import secrets
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from db.database import connect, now_text

PRODUCT_COLUMNS = (
    "id",
    "user_id",
    "name",
    "cost_price",
    "sell_price",
    "stock",
    "barcode",
    "category",
    "is_photocopy",
)
UPDATABLE_PRODUCT_COLUMNS = frozenset(PRODUCT_COLUMNS) - {"id", "user_id"}

RECEIPT_COLUMNS = (
    "id",
    "user_id",
    "receipt_number",
    "subtotal",
    "discount",
    "total",
    "profit",
    "payment_method",
    "created_at",
)

RECEIPT_ITEM_COLUMNS = (
    "receipt_id",
    "product_id",
    "product_name",
    "quantity",
    "sell_price",
    "cost_price",
    "final_price",
)


def _product_row(row) -> Dict[str, Any]:
    product = dict(row)
    product["is_photocopy"] = bool(product["is_photocopy"])
    return product


# ---------------------------
# Users & credentials
# ---------------------------


async def create_user(email: str, username: str, pwd_hash: str) -> str:
    """Insert a user and return its id. Raises sqlite3.IntegrityError on duplicates."""
    uid = str(uuid.uuid4())
    async with connect() as conn:
        await conn.execute(
            "INSERT INTO users(id, email, username, pwd_hash, created_at) VALUES (?, ?, ?, ?, ?);",
            (uid, email, username, pwd_hash, now_text()),
        )
        await conn.commit()
    return uid


async def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, email, username, pwd_hash FROM users WHERE email = ?;",
            (email,),
        )
        row = await cur.fetchone()
        await cur.close()
    return dict(row) if row else None


async def lookup_email(identifier: str) -> Optional[str]:
    """Resolve a username or an email address to the account's email."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT email FROM users WHERE username = ? OR email = ? LIMIT 1;",
            (identifier, identifier),
        )
        row = await cur.fetchone()
        await cur.close()
    return row[0] if row else None


async def username_or_email_taken(email: str, username: str) -> bool:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT 1 FROM users WHERE email = ? OR username = ? LIMIT 1;",
            (email, username),
        )
        row = await cur.fetchone()
        await cur.close()
    return row is not None


async def create_password_reset(email: str) -> Optional[str]:
    """Store a reset token for the account; None if no such email."""
    user = await get_user_by_email(email)
    if not user:
        return None
    token = secrets.token_urlsafe(24)
    async with connect() as conn:
        await conn.execute(
            "INSERT INTO password_resets(token, user_id, created_at) VALUES (?, ?, ?);",
            (token, user["id"], now_text()),
        )
        await conn.commit()
    return token


# ---------------------------
# Products
# ---------------------------


async def list_products(user_id: str) -> List[Dict[str, Any]]:
    """Owner's products ordered by name."""
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {", ".join(PRODUCT_COLUMNS)}
            FROM products
            WHERE user_id = ?
            ORDER BY name COLLATE NOCASE, id;
            """,
            (user_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_product_row(r) for r in rows]


async def get_product(product_id: str) -> Optional[Dict[str, Any]]:
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {', '.join(PRODUCT_COLUMNS)} FROM products WHERE id = ?;",
            (product_id,),
        )
        row = await cur.fetchone()
        await cur.close()
    return _product_row(row) if row else None


async def insert_product(user_id: str, columns: Mapping[str, Any]) -> Dict[str, Any]:
    row = {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "name": columns.get("name"),
        "cost_price": columns.get("cost_price", 0),
        "sell_price": columns.get("sell_price", 0),
        "stock": columns.get("stock", 0),
        "barcode": columns.get("barcode"),
        "category": columns.get("category"),
        "is_photocopy": int(bool(columns.get("is_photocopy", False))),
    }
    async with connect() as conn:
        await conn.execute(
            f"""
            INSERT INTO products({", ".join(row)}, created_at)
            VALUES ({", ".join("?" for _ in row)}, ?);
            """,
            (*row.values(), now_text()),
        )
        await conn.commit()
    row["is_photocopy"] = bool(row["is_photocopy"])
    return row


async def update_product(
    user_id: str, product_id: str, columns: Mapping[str, Any]
) -> int:
    """
    Set only the given columns; returns the number of rows updated.
    Column names are checked against UPDATABLE_PRODUCT_COLUMNS.
    """
    unknown = set(columns) - UPDATABLE_PRODUCT_COLUMNS
    if unknown:
        raise ValueError(f"Cannot update product column(s): {sorted(unknown)}")
    if not columns:
        return 0

    values = [
        int(bool(v)) if k == "is_photocopy" else v for k, v in columns.items()
    ]
    assignments = ", ".join(f"{k} = ?" for k in columns)
    async with connect() as conn:
        res = await conn.execute(
            f"UPDATE products SET {assignments} WHERE id = ? AND user_id IS ?;",
            (*values, product_id, user_id),
        )
        await conn.commit()
        return res.rowcount


# ---------------------------
# Invoice numbers
# ---------------------------


async def next_invoice_seq(prefix: str, when: datetime) -> int:
    """Bump and return the per-prefix, per-day counter."""
    day = when.strftime("%Y%m%d")
    async with connect() as conn:
        await conn.execute(
            """
            INSERT INTO invoice_counters(prefix, day, last_seq) VALUES (?, ?, 1)
            ON CONFLICT(prefix, day) DO UPDATE SET last_seq = last_seq + 1;
            """,
            (prefix, day),
        )
        cur = await conn.execute(
            "SELECT last_seq FROM invoice_counters WHERE prefix = ? AND day = ?;",
            (prefix, day),
        )
        row = await cur.fetchone()
        await cur.close()
        await conn.commit()
    return int(row[0])


# ---------------------------
# Receipts
# ---------------------------


async def insert_receipt(row: Mapping[str, Any]) -> Dict[str, Any]:
    stored = {c: row.get(c) for c in RECEIPT_COLUMNS}
    stored["id"] = str(uuid.uuid4())
    stored["created_at"] = now_text()
    async with connect() as conn:
        await conn.execute(
            f"""
            INSERT INTO receipts({", ".join(RECEIPT_COLUMNS)})
            VALUES ({", ".join("?" for _ in RECEIPT_COLUMNS)});
            """,
            tuple(stored[c] for c in RECEIPT_COLUMNS),
        )
        await conn.commit()
    return stored


async def insert_receipt_items(rows: List[Mapping[str, Any]]) -> None:
    """All lines go in one transaction; a failing line stores none of them."""
    async with connect() as conn:
        await conn.executemany(
            f"""
            INSERT INTO receipt_items({", ".join(RECEIPT_ITEM_COLUMNS)})
            VALUES ({", ".join("?" for _ in RECEIPT_ITEM_COLUMNS)});
            """,
            [tuple(r.get(c) for c in RECEIPT_ITEM_COLUMNS) for r in rows],
        )
        await conn.commit()


async def list_receipts(user_id: str) -> List[Dict[str, Any]]:
    """
    Owner's receipts in reverse chronological order, each with its "items";
    every item carries the current "product" row, or None if it was deleted.
    """
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {", ".join(RECEIPT_COLUMNS)}
            FROM receipts
            WHERE user_id IS ?
            ORDER BY created_at DESC;
            """,
            (user_id,),
        )
        receipts = [dict(r) for r in await cur.fetchall()]
        await cur.close()

        for receipt in receipts:
            cur = await conn.execute(
                f"""
                SELECT ri.id, {", ".join("ri." + c for c in RECEIPT_ITEM_COLUMNS)},
                       {", ".join("p." + c + " AS p_" + c for c in PRODUCT_COLUMNS)}
                FROM receipt_items ri
                LEFT JOIN products p ON p.id = ri.product_id
                WHERE ri.receipt_id = ?
                ORDER BY ri.id;
                """,
                (receipt["id"],),
            )
            item_rows = await cur.fetchall()
            await cur.close()

            items = []
            for r in item_rows:
                r = dict(r)
                product = {c: r.pop("p_" + c) for c in PRODUCT_COLUMNS}
                r["product"] = _product_row(product) if product["id"] else None
                items.append(r)
            receipt["items"] = items
    return receipts
