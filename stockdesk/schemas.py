"""
Input schemas for the product and category forms.

Validation runs synchronously on submit. A failure raises
:class:`stockdesk.errors.ValidationError` holding one message per offending
field (the first rule that field broke); success returns the normalized form,
ready to be sent by :class:`stockdesk.client.StoreClient`.
"""
import re
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import AnyUrl, BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from stockdesk.errors import ValidationError

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

_RULE = "form_rule"
_url = TypeAdapter(AnyUrl)


def _rule(message: str) -> PydanticCustomError:
    return PydanticCustomError(_RULE, message)


def _sized(value: str, max_length: Optional[int], required: str, too_long: str = "") -> str:
    if not value:
        raise _rule(required)
    if max_length is not None and len(value) > max_length:
        raise _rule(too_long)
    return value


def is_valid_slug(value: str) -> bool:
    return bool(value) and SLUG_PATTERN.match(value) is not None


def slugify(name: str) -> str:
    """Default slug for a category name, e.g. "Men's Wear" -> "men-s-wear" """
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower())
    return slug.strip("-")


# ---------------------------
# Product form
# ---------------------------
class ProductForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    description: str
    price: float = Field(allow_inf_nan=False)
    category: str
    stock: int
    status: str
    image: Optional[str] = None

    @field_validator("price", "stock", mode="before")
    @classmethod
    def _reject_bool(cls, v: Any) -> Any:
        # bool is an int subclass and would pass as 1 or 0
        if isinstance(v, bool):
            raise ValueError("not a number")
        return v

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        return _sized(v, 100, "Product name is required", "Name is too long")

    @field_validator("description")
    @classmethod
    def _check_description(cls, v: str) -> str:
        return _sized(v, 500, "Description is required", "Description is too long")

    @field_validator("price")
    @classmethod
    def _check_price(cls, v: float) -> float:
        if v < 0:
            raise _rule("Price must be positive")
        return v

    @field_validator("category")
    @classmethod
    def _check_category(cls, v: str) -> str:
        return _sized(v, None, "Category is required")

    @field_validator("stock")
    @classmethod
    def _check_stock(cls, v: int) -> int:
        if v < 0:
            raise _rule("Stock cannot be negative")
        return v

    @field_validator("status")
    @classmethod
    def _check_status(cls, v: str) -> str:
        return _sized(v, None, "Status is required")

    @field_validator("image")
    @classmethod
    def _check_image(cls, v: Optional[str]) -> Optional[str]:
        # empty string means "no image"
        if not v:
            return None
        try:
            _url.validate_python(v)
        except PydanticValidationError:
            raise _rule("Invalid URL")
        return v

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump()


# messages for missing or mistyped values, where no rule validator ran
PRODUCT_FIELD_MESSAGES = {
    "name": "Product name is required",
    "description": "Description is required",
    "price": "Price must be a number",
    "category": "Category is required",
    "stock": "Stock must be a whole number",
    "status": "Status is required",
    "image": "Invalid URL",
}


# ---------------------------
# Category form
# ---------------------------
class CategoryForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    slug: str

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        return _sized(v, None, "Category name is required")

    @field_validator("slug")
    @classmethod
    def _check_slug(cls, v: str) -> str:
        _sized(v, None, "Slug is required")
        if not is_valid_slug(v):
            raise _rule("Slug must be lowercase with hyphens (e.g., mens-wear)")
        return v

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump()


CATEGORY_FIELD_MESSAGES = {
    "name": "Category name is required",
    "slug": "Slug is required",
}


# ---------------------------
# Entry points
# ---------------------------
def _field_errors(exc: PydanticValidationError, fallbacks: Mapping[str, str]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "form"
        if field in errors:
            continue
        if err["type"] == _RULE:
            errors[field] = err["msg"]
        else:
            errors[field] = fallbacks.get(field, err["msg"])
    return errors


def validate_product(data: Union[ProductForm, Mapping[str, Any]]) -> ProductForm:
    if isinstance(data, ProductForm):
        return data
    try:
        return ProductForm.model_validate(dict(data))
    except PydanticValidationError as exc:
        raise ValidationError(_field_errors(exc, PRODUCT_FIELD_MESSAGES)) from exc


def validate_category(data: Union[CategoryForm, Mapping[str, Any]]) -> CategoryForm:
    if isinstance(data, CategoryForm):
        return data
    try:
        return CategoryForm.model_validate(dict(data))
    except PydanticValidationError as exc:
        raise ValidationError(_field_errors(exc, CATEGORY_FIELD_MESSAGES)) from exc
