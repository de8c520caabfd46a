from app.models.client import Address, Client, PhoneNumber
from app.models.configuration import Configuration
from app.models.inventory import Category, Order, OrderLine, Product
from app.models.user import User
from app.models.voucher import Voucher

__all__ = [
    "Address",
    "Category",
    "Client",
    "Configuration",
    "Order",
    "OrderLine",
    "PhoneNumber",
    "Product",
    "User",
    "Voucher",
]
