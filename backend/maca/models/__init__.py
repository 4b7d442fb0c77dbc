from .enums import SaleStatus, InvoiceStatus, PaymentMethod, UserRole, EmployeeStatus, enum_values
from .auth import User, SessionToken
from .inventory import Product, ProductStock
from .sales import Sale, SaleItem, SalePayment
from .purchasing import Provider, Invoice, InvoicePayment
from .documents import DocumentSequence
from .employees import Employee

__all__ = [
    'SaleStatus', 'InvoiceStatus', 'PaymentMethod', 'UserRole', 'EmployeeStatus', 'enum_values',
    'User', 'SessionToken',
    'Product', 'ProductStock',
    'Sale', 'SaleItem', 'SalePayment',
    'Provider', 'Invoice', 'InvoicePayment',
    'DocumentSequence',
    'Employee',
]
