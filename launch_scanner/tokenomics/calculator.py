"""Integer-exact tokenomics helpers.

Token amounts are raw base-unit integers end to end; nothing here goes
through float division.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from launch_scanner.chains.base import Transfer
from launch_scanner.errors import ValidationError


@dataclass(frozen=True)
class Percentage:
    percent: Decimal  # two decimal places
    formatted: str


@dataclass
class MovementSummary:
    details: str = ""
    sent_to_zero: bool = False
    flagged: list[str] = field(default_factory=list)
    total_out: int = 0


def percentage_of(numerator: int, denominator: int) -> Percentage | None:
    """Percentage of numerator in denominator, truncated to basis points.

    Returns None for a non-positive denominator or a negative numerator.
    """
    if denominator <= 0 or numerator < 0:
        return None
    bps = (numerator * 10_000) // denominator
    percent = (Decimal(bps) / 100).quantize(Decimal("0.01"))
    return Percentage(percent=percent, formatted=f"{percent}%")


def format_large_amount(raw: int, decimals: int) -> str:
    """Whole-unit amount with thousands separators, rounded half up."""
    if raw == 0:
        return "0"
    scale = 10 ** decimals
    whole, remainder = divmod(abs(raw), scale)
    if remainder * 2 >= scale:
        whole += 1
    sign = "-" if raw < 0 else ""
    return f"{sign}{whole:,}"


def to_raw_units(whole_tokens: int, decimals: int) -> int:
    return whole_tokens * 10 ** decimals


def parse_amount(value: str | int | None) -> int:
    """Parse a non-negative integer amount from an API string."""
    if isinstance(value, int) and not isinstance(value, bool):
        amount = value
    else:
        text = str(value).strip() if value is not None else ""
        if not text.isdigit():
            raise ValidationError(f"Unparseable token amount: {value!r}")
        amount = int(text)
    if amount < 0:
        raise ValidationError(f"Negative token amount: {value!r}")
    return amount


def sum_allocations(entries: Iterable[dict], names: Iterable[str], include_default: bool = True) -> int:
    """Sum allocation amounts whose name matches (case-insensitive) or flagged default.

    Entries with missing or malformed amounts are skipped.
    """
    wanted = {n.lower() for n in names}
    total = 0
    for entry in entries:
        name = (entry.get("name") or "").lower()
        if name not in wanted and not (include_default and entry.get("isDefault")):
            continue
        try:
            total += parse_amount(entry.get("amount"))
        except ValidationError:
            continue
    return total


def classify_outgoing_transfers(
    transfers: Iterable[Transfer],
    *,
    holder_balance: int,
    burn_addresses: Iterable[str] = (),
    lock_addresses: Iterable[str] = (),
    sale_addresses: Iterable[str] = (),
    contract_addresses: Iterable[str] = (),
    threshold: float = 0.05,
    decimals: int = 18,
) -> MovementSummary:
    """Describe where a holder's tokens went.

    Every transfer is listed; any transfer above ``threshold`` of
    ``holder_balance`` (the balance before the movements) is also flagged.
    Address matching is case-insensitive. A destination that is a deployed
    contract but not a known burn/lock/sale address is treated as a sale.
    """
    burns = {a.lower() for a in burn_addresses}
    locks = {a.lower() for a in lock_addresses}
    sales = {a.lower() for a in sale_addresses}
    contracts = {a.lower() for a in contract_addresses}

    # exact fraction, compared on integers
    ratio = Decimal(str(threshold)).as_integer_ratio()
    summary = MovementSummary()
    lines: list[str] = []

    for t in transfers:
        if t.amount <= 0:
            continue
        summary.total_out += t.amount
        amount = format_large_amount(t.amount, decimals)
        dest = (t.to or "").lower()

        if not dest:
            line = f"Transferred out {amount} tokens (destination unclear)"
        elif dest in burns:
            line = f"Burned {amount} tokens"
            summary.sent_to_zero = True
        elif dest in locks:
            line = f"Locked {amount} tokens ({t.to})"
        elif dest in sales:
            line = f"Sold {amount} tokens"
        elif dest in contracts:
            line = f"Sold {amount} tokens (to contract {t.to})"
        else:
            line = f"Transferred {amount} tokens to {t.to}"

        if holder_balance > 0 and t.amount * ratio[1] > holder_balance * ratio[0]:
            share = percentage_of(t.amount, holder_balance)
            line += f" [large: {share.formatted} of holdings]"
            summary.flagged.append(t.tx_hash or line)
        lines.append(f"- {line}")

    summary.details = "\n".join(lines)
    return summary
