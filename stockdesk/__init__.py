from stockdesk.auth import AuthSession, AuthState, Gate, StoreAuthProvider
from stockdesk.cache import QueryCache, QueryResult, QueryStatus
from stockdesk.client import StoreClient
from stockdesk.errors import (
    AuthError, NetworkError, NotFoundError, ResponseShapeError,
    StockdeskError, StoreError, ValidationError,
)
from stockdesk.models import Category, Product, ProductPage, ProductQuery
from stockdesk.queries import InventoryData, Mutation
from stockdesk.schemas import CategoryForm, ProductForm, slugify, validate_category, validate_product

__version__ = "0.1.0"
