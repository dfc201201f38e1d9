# stockledger/models/__init__.py
from stockledger.models.enums import MovementType
from stockledger.models.location import Location
from stockledger.models.product import Product
from stockledger.models.stock import Stock
from stockledger.models.stock_movement import StockMovement

__all__ = ["MovementType", "Location", "Product", "Stock", "StockMovement"]
