from topups.utils.parsing import calculate_expiry_date, parse_data_to_gb
from topups.utils.vendors import (
    DemoGateway,
    VendorGateway,
    get_gateway,
    record_successful_connection,
)

__all__ = [
    "DemoGateway",
    "VendorGateway",
    "calculate_expiry_date",
    "get_gateway",
    "parse_data_to_gb",
    "record_successful_connection",
]
