import pytest

from order_tracker.auth.crud import create_user
from order_tracker.errors import NotFoundError, ValidationError
from order_tracker.models import OrderFilters
from order_tracker.orders.crud import create_order, delete_order, get_order, list_orders, update_order
from order_tracker.projects.crud import create_project


@pytest.fixture
def project(conn):
    u = create_user(conn, email="a@x.com", password="secret1", status="approved", bcrypt_rounds=4)
    return create_project(conn, user_id=u["id"], name="P1")


def test_create_order_defaults(conn, project):
    o = create_order(conn, project_id=project["id"], title="Widget")

    assert o["title"] == "Widget"
    assert o["projectId"] == project["id"]
    assert o["quantity"] == 1
    assert o["paymentStatus"] == "unpaid"
    assert o["deliveryStatus"] == "pending"
    assert o["description"] is None
    assert o["productUrl"] is None
    assert o["invoiceNumber"] is None
    assert get_order(conn, o["id"]) == o


def test_create_order_validation(conn, project):
    with pytest.raises(ValidationError):
        create_order(conn, project_id=project["id"], title="  ")
    with pytest.raises(ValidationError):
        create_order(conn, project_id=project["id"], title="Widget", payment_status="refunded")
    with pytest.raises(ValidationError):
        create_order(conn, project_id=project["id"], title="Widget", delivery_status="lost")
    with pytest.raises(ValidationError):
        create_order(conn, project_id=project["id"], title="Widget", quantity=0)
    with pytest.raises(NotFoundError):
        create_order(conn, project_id=9999, title="Widget")


def test_list_orders_newest_first(conn, project):
    ids = [create_order(conn, project_id=project["id"], title=f"Order {i}")["id"] for i in range(5)]

    page = list_orders(conn, project["id"])
    assert page.total == 5
    assert [o["id"] for o in page.orders] == list(reversed(ids))


def test_list_orders_scoped_to_project(conn, project):
    other = create_project(conn, user_id=project["userId"], name="P2")
    create_order(conn, project_id=project["id"], title="Mine")
    create_order(conn, project_id=other["id"], title="Other")

    page = list_orders(conn, project["id"])
    assert [o["title"] for o in page.orders] == ["Mine"]


def test_filters_are_conjunctive(conn, project):
    create_order(conn, project_id=project["id"], title="Red widget", payment_status="paid")
    create_order(conn, project_id=project["id"], title="Blue widget", payment_status="unpaid")
    create_order(conn, project_id=project["id"], title="Red gadget", payment_status="paid", delivery_status="delivered")
    create_order(conn, project_id=project["id"], title="Green gadget", payment_status="partial")

    paid = list_orders(conn, project["id"], OrderFilters(payment_status="paid"))
    assert paid.total == 2
    assert all(o["paymentStatus"] == "paid" for o in paid.orders)

    both = list_orders(conn, project["id"], OrderFilters(payment_status="paid", search="widget"))
    assert [o["title"] for o in both.orders] == ["Red widget"]

    three = list_orders(
        conn,
        project["id"],
        OrderFilters(payment_status="paid", delivery_status="delivered", search="red"),
    )
    assert [o["title"] for o in three.orders] == ["Red gadget"]


def test_search_is_case_insensitive_substring(conn, project):
    create_order(conn, project_id=project["id"], title="USB-C Cable")
    create_order(conn, project_id=project["id"], title="Monitor")

    page = list_orders(conn, project["id"], OrderFilters(search="usb-c"))
    assert [o["title"] for o in page.orders] == ["USB-C Cable"]
    assert list_orders(conn, project["id"], OrderFilters(search="CABLE")).total == 1


def test_search_treats_wildcards_literally(conn, project):
    create_order(conn, project_id=project["id"], title="100% cotton")
    create_order(conn, project_id=project["id"], title="1000 screws")
    create_order(conn, project_id=project["id"], title="snake_case")
    create_order(conn, project_id=project["id"], title="snakeXcase")

    assert [o["title"] for o in list_orders(conn, project["id"], OrderFilters(search="100%")).orders] == ["100% cotton"]
    assert [o["title"] for o in list_orders(conn, project["id"], OrderFilters(search="e_c")).orders] == ["snake_case"]


def test_invalid_status_filter(conn, project):
    with pytest.raises(ValidationError):
        list_orders(conn, project["id"], OrderFilters(payment_status="free"))


def test_pagination_45_orders(conn, project):
    for i in range(45):
        create_order(conn, project_id=project["id"], title=f"Order {i}")

    first = list_orders(conn, project["id"], page=1, limit=20)
    last = list_orders(conn, project["id"], page=3, limit=20)
    beyond = list_orders(conn, project["id"], page=4, limit=20)

    assert first.total == 45
    assert len(first.orders) == 20
    assert len(last.orders) == 5
    assert beyond.orders == []
    assert first.orders[0]["title"] == "Order 44"
    assert last.orders[-1]["title"] == "Order 0"


def test_pagination_clamps_bad_page_and_limit(conn, project):
    for i in range(3):
        create_order(conn, project_id=project["id"], title=f"Order {i}")

    page = list_orders(conn, project["id"], page=0, limit=0)
    assert page.total == 3
    assert len(page.orders) == 1
    assert page.orders[0]["title"] == "Order 2"


def test_partial_update_only_touches_given_fields(conn, project):
    o = create_order(
        conn,
        project_id=project["id"],
        title="Widget",
        description="blue",
        product_url="https://shop.example.com/w",
        quantity=3,
        invoice_number="INV-1",
    )

    u = update_order(conn, o["id"], {"delivery_status": "shipping"})

    assert u["deliveryStatus"] == "shipping"
    for key in ("title", "description", "productUrl", "quantity", "invoiceNumber", "paymentStatus", "projectId", "createdAt"):
        assert u[key] == o[key]


def test_update_can_clear_optional_fields(conn, project):
    o = create_order(conn, project_id=project["id"], title="Widget", description="blue")
    u = update_order(conn, o["id"], {"description": None})
    assert u["description"] is None


def test_update_rejects_bad_changes(conn, project):
    o = create_order(conn, project_id=project["id"], title="Widget")

    with pytest.raises(ValidationError):
        update_order(conn, o["id"], {"title": None})
    with pytest.raises(ValidationError):
        update_order(conn, o["id"], {"payment_status": "free"})
    with pytest.raises(ValidationError):
        update_order(conn, o["id"], {"order_id": 5})
    with pytest.raises(NotFoundError):
        update_order(conn, 9999, {"title": "x"})

    assert get_order(conn, o["id"]) == o


def test_delete_order(conn, project):
    keep = create_order(conn, project_id=project["id"], title="Keep")
    gone = create_order(conn, project_id=project["id"], title="Gone")

    assert delete_order(conn, gone["id"]) is True
    assert get_order(conn, gone["id"]) is None

    # Absent id: reported, nothing else touched.
    assert delete_order(conn, gone["id"]) is False
    assert delete_order(conn, 9999) is False
    assert list_orders(conn, project["id"]).total == 1
    assert get_order(conn, keep["id"]) == keep
