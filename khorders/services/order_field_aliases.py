# khorders/services/order_field_aliases.py
"""
下单 payload 的字段别名表（按优先级排序，先命中者胜）。

历史表单 / 旧版接口用过的字段名全部登记在这里；新增别名只改表，
不动 order_normalizer 的控制流。路径是 key 元组：("contact", "email")
表示 raw["contact"]["email"]。
"""

from __future__ import annotations

from typing import Dict, Tuple

Path = Tuple[str, ...]

# 嵌套地址对象，按优先级
ADDRESS_CONTAINERS: Tuple[str, ...] = (
    "address",
    "shippingAddress",
    "shipping_address",
    "billingAddress",
    "billing_address",
    "delivery",
)


def _flat(*names: str) -> Tuple[Path, ...]:
    return tuple((n,) for n in names)


def _nested(*names: str) -> Tuple[Path, ...]:
    return tuple((c, n) for c in ADDRESS_CONTAINERS for n in names)


CUSTOMER_EMAIL: Tuple[Path, ...] = (
    *_flat("customer_email", "email", "customerEmail", "emailAddress", "email_address"),
    ("contact", "email"),
    ("contact", "emailAddress"),
    ("customer", "email"),
)

CUSTOMER_NAME: Tuple[Path, ...] = (
    *_flat("customer_name", "customerName", "name", "fullName", "full_name"),
    ("contact", "name"),
    ("contact", "fullName"),
    ("customer", "name"),
)

PHONE: Tuple[Path, ...] = (
    *_flat("phone", "phoneNumber", "phone_number", "tel"),
    ("contact", "phone"),
    ("customer", "phone"),
)

NOTES: Tuple[Path, ...] = _flat("notes", "orderNotes", "order_notes", "comment", "comments")

FULFILLMENT: Tuple[Path, ...] = _flat(
    "fulfillment_method",
    "fulfillment",
    "fulfillmentMethod",
    "method",
    "delivery_method",
    "deliveryMethod",
)

# 布尔 ship 旗标（没有显式 fulfillment 时才看）
SHIP_FLAG: Tuple[Path, ...] = _flat("ship", "isShipping", "is_shipping")

REQUESTED_DATE: Tuple[Path, ...] = _flat(
    "requested_date",
    "requestedDate",
    "pickup_date",
    "pickupDate",
    "ship_date",
    "shipDate",
    "fulfillment_date",
    "fulfillmentDate",
    "date",
)

# address 也可能直接是一整行字符串（旧表单），因此 ("address",) 排在嵌套之前
ADDRESS_FIELDS: Dict[str, Tuple[Path, ...]] = {
    "address_line1": (
        *_flat("address_line1", "address1", "addressLine1", "street", "street1"),
        ("address",),
        *_nested("address_line1", "line1", "address1", "addressLine1", "street", "street1"),
    ),
    "address_line2": (
        *_flat("address_line2", "address2", "addressLine2", "apt", "unit", "suite"),
        *_nested("address_line2", "line2", "address2", "addressLine2", "apt", "unit", "suite"),
    ),
    "city": (
        *_flat("city", "town"),
        *_nested("city", "town"),
    ),
    "state": (
        *_flat("state", "region", "province"),
        *_nested("state", "region", "province"),
    ),
    "postal_code": (
        *_flat("postal_code", "postalCode", "postal", "postcode", "zip", "zipCode", "zip_code"),
        *_nested("postal_code", "postalCode", "postal", "postcode", "zip", "zipCode", "zip_code"),
    ),
    "country": (
        *_flat("country", "countryCode", "country_code"),
        *_nested("country", "countryCode", "country_code"),
    ),
}

# 商品行内部字段
ITEM_NAME: Tuple[str, ...] = ("name", "item", "title", "product", "productName", "product_name")
ITEM_QTY: Tuple[str, ...] = ("quantity", "qty", "count")
ITEM_PRICE: Tuple[str, ...] = ("unit_price", "unitPrice", "price")
ITEM_SKU: Tuple[str, ...] = ("sku", "id", "sku_id")
ITEM_VARIANT: Tuple[str, ...] = ("variant", "option")

PICKUP_WORDS = frozenset({"pickup", "pick-up", "pick_up", "local", "farm"})
SHIPPING_WORDS = frozenset({"shipping", "ship", "shipped", "delivery", "mail"})

DEFAULT_COUNTRY = "USA"
DEFAULT_CUSTOMER_NAME = "Customer"
