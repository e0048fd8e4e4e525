from supply_tracker.views.classifier import (
    OrderView,
    OrderViews,
    build_order_views,
    classify_order,
    flatten_orders,
    get_business_orders,
    get_in_transit_orders,
    get_pipeline_orders,
    partition_orders,
)

__all__ = [
    "OrderView",
    "OrderViews",
    "build_order_views",
    "classify_order",
    "flatten_orders",
    "get_business_orders",
    "get_in_transit_orders",
    "get_pipeline_orders",
    "partition_orders",
]
