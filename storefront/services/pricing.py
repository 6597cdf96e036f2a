"""Server-side cart pricing.

Prices and availability always come from the ``items`` table; the client only
names item ids and quantities. Amounts are integer cents. Rounding is
half-away-from-zero (``ROUND_HALF_UP`` on ``Decimal``), both for converting a
stored price to cents and for the tax amount.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from storefront.errors import ItemNotFound, ItemUnavailable, TotalMismatch, ValidationError
from storefront.models import Item, ItemStatus

DECIMAL_TOTAL_TOLERANCE = Decimal("0.005")
_CENT = Decimal("1")


@dataclass(frozen=True)
class CartLine:
    item_id: int
    quantity: int = 1


@dataclass(frozen=True)
class PricedLine:
    item_id: int
    name: str
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass(frozen=True)
class PricedCart:
    lines: tuple[PricedLine, ...]
    subtotal_cents: int
    tax_cents: int

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.tax_cents

    def snapshot(self) -> list[dict]:
        """Cart lines as stored on a payment snapshot."""
        return [
            {"id": line.item_id, "quantity": line.quantity, "unit_price_cents": line.unit_price_cents}
            for line in self.lines
        ]


def price_to_cents(price) -> int:
    return int((Decimal(str(price)) * 100).quantize(_CENT, rounding=ROUND_HALF_UP))


def tax_for(subtotal_cents: int, tax_rate: Decimal) -> int:
    return int((Decimal(subtotal_cents) * tax_rate).quantize(_CENT, rounding=ROUND_HALF_UP))


def normalize_cart(lines: Iterable[CartLine]) -> list[CartLine]:
    cart = list(lines)
    if not cart:
        raise ValidationError("Cart is empty")
    seen: set[int] = set()
    for line in cart:
        if line.quantity < 1:
            raise ValidationError(f"Invalid quantity for item {line.item_id}")
        if line.item_id in seen:
            raise ValidationError(f"Item {line.item_id} appears more than once in cart")
        seen.add(line.item_id)
    return cart


def load_items(db: Session, item_ids: list[int], *, lock: bool = False) -> dict[int, Item]:
    query = db.query(Item).filter(Item.id.in_(item_ids)).order_by(Item.id)
    if lock:
        query = query.with_for_update()
    return {item.id: item for item in query.all()}


def price_items(
    cart: list[CartLine],
    items: dict[int, Item],
    tax_rate: Decimal,
    *,
    require_available: bool,
) -> PricedCart:
    """Price already-loaded items. Raises ItemNotFound / ItemUnavailable."""
    missing = [line.item_id for line in cart if line.item_id not in items]
    if missing:
        raise ItemNotFound(f"Item(s) not found: {', '.join(str(i) for i in missing)}")

    if require_available:
        unavailable = [
            line.item_id for line in cart if items[line.item_id].status != ItemStatus.AVAILABLE.value
        ]
        if unavailable:
            raise ItemUnavailable(
                f"Item(s) no longer available: {', '.join(str(i) for i in unavailable)}"
            )

    priced = tuple(
        PricedLine(
            item_id=line.item_id,
            name=items[line.item_id].name or f"Item {line.item_id}",
            quantity=line.quantity,
            unit_price_cents=price_to_cents(items[line.item_id].price),
        )
        for line in cart
    )
    subtotal = sum(line.line_total_cents for line in priced)
    result = PricedCart(lines=priced, subtotal_cents=subtotal, tax_cents=tax_for(subtotal, tax_rate))
    if result.total_cents <= 0:
        raise ValidationError("Invalid amount")
    return result


def price_cart(
    db: Session,
    lines: Iterable[CartLine],
    tax_rate: Decimal,
    *,
    require_available: bool = True,
    lock: bool = False,
) -> PricedCart:
    cart = normalize_cart(lines)
    items = load_items(db, [line.item_id for line in cart], lock=lock)
    return price_items(cart, items, tax_rate, require_available=require_available)


def verify_claimed_total_cents(priced: PricedCart, claimed_cents: int) -> None:
    if claimed_cents != priced.total_cents:
        raise TotalMismatch(
            f"Total amount mismatch: expected {priced.total_cents}, got {claimed_cents}"
        )


def verify_claimed_total_decimal(
    priced: PricedCart,
    claimed: Decimal,
    tolerance: Decimal = DECIMAL_TOTAL_TOLERANCE,
) -> None:
    expected = Decimal(priced.total_cents) / 100
    if abs(Decimal(str(claimed)) - expected) > tolerance:
        raise TotalMismatch(f"Total amount mismatch: expected {expected}, got {claimed}")
