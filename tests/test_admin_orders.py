from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from fastapi import status
from sqlalchemy.exc import OperationalError

from storefront.errors import TransientStoreError
from storefront.models import Item, Order, OrderItem
from storefront.services import order_admin


def _cents(item):
    return int(item.price * 100)


def _order(db, items, status="pending", country="US", checkout_id=None, created_at=None):
    order = Order(
        checkout_id=checkout_id,
        email="jane@example.com",
        full_name="Jane Doe",
        total_amount_cents=sum(_cents(item) * qty for item, qty in items),
        tax_amount_cents=0,
        currency="USD",
        address={"line1": "1 Main St", "country": country},
        country_code=country,
        status=status,
    )
    if created_at is not None:
        order.created_at = created_at
    for item, qty in items:
        order.items.append(
            OrderItem(product_id=item.id, quantity=qty, price_cents=_cents(item), status=status)
        )
        item.status = "pending"
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def test_admin_endpoints_require_token(client):
    assert client.get("/api/admin/orders").status_code == status.HTTP_401_UNAUTHORIZED
    assert client.patch("/api/admin/orders/1", json={}).status_code == status.HTTP_401_UNAUTHORIZED
    assert client.delete("/api/admin/orders/1").status_code == status.HTTP_401_UNAUTHORIZED


def test_admin_endpoints_require_admin_role(client, staff_user):
    token = client.post("/api/auth/login", json={"username": "staff", "password": "staffpassword123"}).json()[
        "accessToken"
    ]

    response = client.get("/api/admin/orders", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_list_orders_newest_first_with_images(client, db, admin_headers, shirt, jacket):
    now = datetime.now(timezone.utc)
    older = _order(db, [(shirt, 1)], created_at=now - timedelta(days=1))
    newer = _order(db, [(jacket, 2)], country="DE", created_at=now)

    response = client.get("/api/admin/orders", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert [order["id"] for order in data] == [newer.id, older.id]
    assert data[1]["items"][0]["images"] == ["/uploads/shirt-front.jpg"]
    assert data[1]["items"][0]["productId"] == shirt.id
    assert data[1]["items"][0]["priceCents"] == 1250
    assert data[0]["totalAmountCents"] == 1500
    assert data[0]["countryCode"] == "DE"


def test_list_orders_filters(client, db, admin_headers, shirt, jacket):
    _order(db, [(shirt, 1)], status="shipped", country="US")
    de_order = _order(db, [(jacket, 1)], status="pending", country="DE")

    by_status = client.get("/api/admin/orders", params={"status": "shipped"}, headers=admin_headers).json()
    by_country = client.get("/api/admin/orders", params={"country": "DE"}, headers=admin_headers).json()

    assert [order["status"] for order in by_status] == ["shipped"]
    assert [order["id"] for order in by_country] == [de_order.id]


def test_list_orders_pagination_limits(client, db, admin_headers, shirt, jacket):
    _order(db, [(shirt, 1)])
    _order(db, [(jacket, 1)])

    page = client.get("/api/admin/orders", params={"limit": 1, "offset": 1}, headers=admin_headers)
    too_big = client.get("/api/admin/orders", params={"limit": 10_000}, headers=admin_headers)
    bad_country = client.get("/api/admin/orders", params={"country": "usa"}, headers=admin_headers)

    assert len(page.json()) == 1
    assert too_big.status_code == status.HTTP_400_BAD_REQUEST
    assert bad_country.status_code == 422


def test_list_orders_tolerates_deleted_item(client, db, admin_headers, shirt):
    order = _order(db, [(shirt, 1)])
    db.query(Item).filter(Item.id == shirt.id).delete()
    db.commit()

    data = client.get("/api/admin/orders", headers=admin_headers).json()

    assert data[0]["id"] == order.id
    assert data[0]["items"][0]["images"] == []


def test_patch_status_cascades_to_order_items(client, db, admin_headers, shirt, jacket):
    order = _order(db, [(shirt, 1), (jacket, 1)])

    response = client.patch(f"/api/admin/orders/{order.id}", json={"status": "shipped"}, headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "shipped"
    db.expire_all()
    assert {line.status for line in db.query(OrderItem).filter(OrderItem.order_id == order.id)} == {"shipped"}
    assert db.get(Item, shirt.id).status == "pending"


def test_cancel_releases_items(client, db, admin_headers, shirt, jacket):
    order = _order(db, [(shirt, 1), (jacket, 1)])

    response = client.patch(
        f"/api/admin/orders/{order.id}", json={"status": "cancelled"}, headers=admin_headers
    )

    assert response.status_code == status.HTTP_200_OK
    db.expire_all()
    assert db.get(Item, shirt.id).status == "available"
    assert db.get(Item, jacket.id).status == "available"
    assert {line.status for line in db.get(Order, order.id).items} == {"cancelled"}


def test_repeated_cancel_does_not_release_again(client, db, admin_headers, shirt):
    order = _order(db, [(shirt, 1)], status="cancelled")
    # Item was resold to someone else after the cancellation.
    shirt.status = "pending"
    db.commit()

    client.patch(f"/api/admin/orders/{order.id}", json={"status": "cancelled"}, headers=admin_headers)

    db.expire_all()
    assert db.get(Item, shirt.id).status == "pending"


def test_deliver_marks_items_sold_and_sets_finalized_at(client, db, admin_headers, shirt):
    order = _order(db, [(shirt, 1)], status="shipped")

    response = client.patch(
        f"/api/admin/orders/{order.id}", json={"status": "delivered"}, headers=admin_headers
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["finalizedAt"] is not None
    db.expire_all()
    assert db.get(Item, shirt.id).status == "sold"


def test_patch_fields_and_order_items(client, db, admin_headers, shirt, jacket):
    order = _order(db, [(shirt, 1), (jacket, 1)])
    jacket_line = next(line for line in order.items if line.product_id == jacket.id)

    response = client.patch(
        f"/api/admin/orders/{order.id}",
        json={
            "email": "new@example.com",
            "countryCode": "FR",
            "items": [{"id": jacket_line.id, "quantity": 3, "priceCents": 700}],
        },
        headers=admin_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["countryCode"] == "FR"
    assert data["fullName"] == "Jane Doe"
    assert data["totalAmountCents"] == 1250 + 3 * 700


def test_patch_with_foreign_order_item_is_rejected(client, db, admin_headers, shirt, jacket):
    order = _order(db, [(shirt, 1)])
    other = _order(db, [(jacket, 1)])

    response = client.patch(
        f"/api/admin/orders/{order.id}",
        json={"status": "shipped", "items": [{"id": other.items[0].id, "quantity": 2}]},
        headers=admin_headers,
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    db.expire_all()
    # The status change from the same request was rolled back.
    assert db.get(Order, order.id).status == "pending"
    assert db.get(OrderItem, order.items[0].id).status == "pending"


def test_patch_unknown_order(client, admin_headers):
    response = client.patch("/api/admin/orders/9999", json={"status": "shipped"}, headers=admin_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_patch_rejects_unknown_status(client, db, admin_headers, shirt):
    order = _order(db, [(shirt, 1)])

    response = client.patch(f"/api/admin/orders/{order.id}", json={"status": "lost"}, headers=admin_headers)

    assert response.status_code == 422


def test_cancel_is_atomic_when_release_fails(db, shirt):
    order = _order(db, [(shirt, 1)])

    with patch.object(
        order_admin,
        "_set_item_status",
        side_effect=OperationalError("UPDATE items", {}, Exception("connection lost")),
    ):
        with pytest.raises(TransientStoreError):
            order_admin.update_order(db, order.id, {"status": "cancelled"})

    db.expire_all()
    assert db.get(Order, order.id).status == "pending"
    assert {line.status for line in db.get(Order, order.id).items} == {"pending"}
    assert db.get(Item, shirt.id).status == "pending"


def test_delete_order(client, db, admin_headers, shirt):
    order = _order(db, [(shirt, 1)])

    response = client.delete(f"/api/admin/orders/{order.id}", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"message": "Order and related items deleted successfully"}
    db.expire_all()
    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0
    assert db.get(Item, shirt.id) is not None


def test_delete_unknown_order(client, admin_headers):
    response = client.delete("/api/admin/orders/9999", headers=admin_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_order_by_checkout(client, db, shirt):
    order = _order(db, [(shirt, 1)], checkout_id="chk-lookup")

    found = client.get("/api/orders/by-checkout/chk-lookup")
    missing = client.get("/api/orders/by-checkout/chk-other")

    assert found.json() == {"orderId": order.id}
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["detail"] == "Order not found yet"


def test_reopen_cancelled_order_reserves_items_again(client, db, admin_headers, shirt):
    order = _order(db, [(shirt, 1)])
    client.patch(f"/api/admin/orders/{order.id}", json={"status": "cancelled"}, headers=admin_headers)

    response = client.patch(
        f"/api/admin/orders/{order.id}", json={"status": "processing"}, headers=admin_headers
    )

    assert response.status_code == status.HTTP_200_OK
    db.expire_all()
    assert db.get(Item, shirt.id).status == "pending"
    assert {line.status for line in db.get(Order, order.id).items} == {"processing"}


def test_reopen_cancelled_order_refused_when_item_resold(client, db, admin_headers, shirt):
    first = _order(db, [(shirt, 1)])
    client.patch(f"/api/admin/orders/{first.id}", json={"status": "cancelled"}, headers=admin_headers)
    second = _order(db, [(shirt, 1)])

    reopen = client.patch(
        f"/api/admin/orders/{first.id}", json={"status": "processing"}, headers=admin_headers
    )
    # Cancelling the first order again must not release the item held by the second.
    client.patch(f"/api/admin/orders/{first.id}", json={"status": "cancelled"}, headers=admin_headers)

    assert reopen.status_code == status.HTTP_409_CONFLICT
    assert reopen.json()["code"] == "item_unavailable"
    db.expire_all()
    assert db.get(Order, first.id).status == "cancelled"
    assert db.get(Order, second.id).status == "pending"
    assert db.get(Item, shirt.id).status == "pending"


def test_deliver_cancelled_order_refused_when_item_resold(client, db, admin_headers, shirt):
    first = _order(db, [(shirt, 1)], status="cancelled")
    shirt.status = "available"
    db.commit()
    _order(db, [(shirt, 1)])

    response = client.patch(
        f"/api/admin/orders/{first.id}", json={"status": "delivered"}, headers=admin_headers
    )

    assert response.status_code == status.HTTP_409_CONFLICT
    db.expire_all()
    assert db.get(Item, shirt.id).status == "pending"
    assert db.get(Order, first.id).finalized_at is None


def test_deliver_reopened_order_marks_items_sold(client, db, admin_headers, shirt):
    order = _order(db, [(shirt, 1)], status="cancelled")
    shirt.status = "available"
    db.commit()

    response = client.patch(
        f"/api/admin/orders/{order.id}", json={"status": "delivered"}, headers=admin_headers
    )

    assert response.status_code == status.HTTP_200_OK
    db.expire_all()
    assert db.get(Item, shirt.id).status == "sold"
