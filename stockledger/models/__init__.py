# Importing every model here registers all tables (and the string-named
# relationships between them) with ``Base.metadata`` in one go.
from .product import Product
from .purchase import StockPurchase
from .sale import Sale, SaleItem

__all__ = ["Product", "StockPurchase", "Sale", "SaleItem"]
