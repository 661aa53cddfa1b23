"""Revenue split for a finalized order.

net = product − platform_fee + seller-kept delivery fee

The platform fee applies to products only. Sellers who deliver themselves
keep the whole delivery fee; courier deliveries earmark it for the courier.
"""

from decimal import Decimal

from src.st_common.cents import calculate_platform_fee
from src.st_common.enums import DeliveryMethod
from src.st_wallet.domain.models import RevenueSplit


def seller_delivery_share(delivery_method: str, delivery_fee: int) -> int:
    if delivery_method == DeliveryMethod.PERSONAL_DELIVERY:
        return delivery_fee
    return 0


def compute_revenue_split(
    product_amount: int,
    delivery_fee: int,
    delivery_method: str,
    fee_rate: Decimal,
) -> RevenueSplit:
    if product_amount < 0 or delivery_fee < 0:
        raise ValueError("Order amounts must not be negative")
    return RevenueSplit(
        product_amount=product_amount,
        delivery_fee=delivery_fee,
        platform_fee=calculate_platform_fee(product_amount, fee_rate),
        seller_delivery_fee=seller_delivery_share(delivery_method, delivery_fee),
    )
