from typing import Callable, List, Literal, Optional, Sequence

from core.models import Receipt

ALIGN_MARKERS = {"l": ":---", "c": ":---:", "r": "---:"}


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[Sequence[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: column headers, or None to promote the first row.
        rows: table body, any values (rendered with str()).
        aligns: 'l', 'c' or 'r' per column, center by default.
    """
    if not rows:
        return ""
    if not headers:
        headers, rows = rows[0], rows[1:]

    aligns = list(aligns) if aligns else ["c"] * len(headers)
    if len(aligns) != len(headers):
        raise ValueError("Length of aligns must match number of headers.")

    def line(cells) -> str:
        return "| " + " | ".join(str(c).replace("|", "\\|") for c in cells) + " |"

    return "\n".join(
        [line(headers), line(ALIGN_MARKERS[a] for a in aligns)]
        + [line(r) for r in rows]
    )


def receipt_markdown(receipt: Receipt, format_price: Callable[[object], str]) -> str:
    """Receipt summary used by the receipt modal and the history screen."""
    rows = [
        [
            item.product.name,
            item.quantity,
            format_price(item.effective_price),
            format_price(item.line_total),
        ]
        for item in receipt.items
    ]
    table = generate_markdown_table(
        ["Product", "Qty", "Unit Price", "Line Total"], rows, ["l", "r", "r", "r"]
    )
    totals = [
        f"**Subtotal:** {format_price(receipt.subtotal)}  ",
        f"**Discount:** {format_price(receipt.discount)}  ",
        f"**Total:** {format_price(receipt.total)}  ",
        f"**Payment:** {receipt.payment_method or '-'}",
    ]
    header = (
        f"### Receipt {receipt.receipt_number or receipt.id}\n\n"
        f"{receipt.timestamp:%d/%m/%Y %H:%M}\n\n"
    )
    return header + table + "\n\n" + "\n".join(totals)
