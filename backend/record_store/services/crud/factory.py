"""
Model configuration and the model registry.

A ModelConfig names the optional behaviors of one table: which column is the
soft delete flag, which column partitions rows into categories, which column
keeps the sort order, and which dependent models receive cascaded deletes.

The ModelRegistry maps model names to configs and builds independent
RecordModel handles from them. Cascades resolve their targets through it,
and a "self" relation gets a fresh handle on the owning model.

Usage:
    registry = ModelRegistry()
    registry.register(ModelConfig(
        name="products",
        table=Product,
        soft_delete_field="is_deleted",
        category_field="menu_id",
        sort_order_field="sort_order",
        cascade={
            "product_allergens": {"keys": "product_id"},
            "products": {"target": "self", "keys": {"product_id": "parent_id"}},
        },
    ))

    products = registry.handle("products", db)
    products.category(3).move_up(42)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError, field_validator
from sqlalchemy import Column, Table

from shared.config.logging import get_logger
from shared.utils.exceptions import ConfigurationError, NotFoundError
from .hooks import LifecycleHooks

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from record_store.services.record_model import RecordModel
    from .cascade_delete import CascadeChain

logger = get_logger(__name__)

# Relation target meaning "the owning model itself"
SELF_RELATION = "self"

_RELATION_OPTIONS = {"target", "keys", "hard_delete"}


def default_primary_key(table_name: str) -> str:
    """
    Primary key column by convention: singular table name + "_id".

    "categories" -> "category_id", "products" -> "product_id",
    "addresses" -> "address_id".
    """
    name = table_name
    if name.endswith("ies") and len(name) > 3:
        name = name[:-3] + "y"
    elif name.endswith(("sses", "shes", "ches", "xes")):
        name = name[:-2]
    elif name.endswith("s") and not name.endswith("ss"):
        name = name[:-1]
    return f"{name}_id"


class Relation(BaseModel):
    """
    A dependent model that follows this model's delete/undelete.

    keys pairs a column of the owning row with a foreign key column of the
    dependent table. With match_any the pairs are ORed (a dependent row
    referencing the owner through any of several columns), otherwise ANDed
    (composite keys).
    """

    model_config = ConfigDict(frozen=True)

    target: str
    keys: tuple[tuple[str, str], ...]
    match_any: bool = False
    hard_delete: bool = False

    @field_validator("keys")
    @classmethod
    def _keys_not_empty(cls, value: tuple[tuple[str, str], ...]) -> tuple[tuple[str, str], ...]:
        if not value:
            raise ValueError("at least one key pair is required")
        return value

    @property
    def local_keys(self) -> list[str]:
        """Columns of the owning row the relation reads."""
        return list(dict.fromkeys(local for local, _ in self.keys))


def resolve_relation(owner: ModelConfig, name: str, options: Any = None) -> Relation:
    """
    Turn a relation declaration into a Relation.

    Accepted forms (name is the key in ModelConfig.cascade):
        None                          -> target=name, owner pk = dependent column of same name
        "product_id"                  -> owner pk = dependent.product_id
        ["from_id", "to_id"]          -> owner pk = dependent.from_id OR dependent.to_id
        {"keys": {"local": "foreign"}, "target": "self", "hard_delete": True}
        Relation(...)                 -> returned unchanged

    Raises:
        ConfigurationError: The declaration cannot be understood.
    """
    if isinstance(options, Relation):
        return options

    if options is None:
        options = {}
    elif isinstance(options, (str, list, tuple, Mapping)) and not (
        isinstance(options, Mapping) and options.keys() & _RELATION_OPTIONS
    ):
        options = {"keys": options}
    elif not isinstance(options, Mapping):
        raise ConfigurationError(owner.name, f"relation '{name}' has unsupported options {options!r}")

    unknown = set(options) - _RELATION_OPTIONS
    if unknown:
        raise ConfigurationError(
            owner.name, f"relation '{name}' has unknown options: {', '.join(sorted(unknown))}"
        )

    raw_keys = options.get("keys", owner.primary_key)
    match_any = False
    if isinstance(raw_keys, str):
        pairs = ((owner.primary_key, raw_keys),)
    elif isinstance(raw_keys, Mapping):
        pairs = tuple((str(local), str(foreign)) for local, foreign in raw_keys.items())
    else:
        pairs = tuple((owner.primary_key, str(foreign)) for foreign in raw_keys)
        match_any = len(pairs) > 1

    try:
        return Relation(
            target=options.get("target", name),
            keys=pairs,
            match_any=match_any,
            hard_delete=options.get("hard_delete", False),
        )
    except PydanticValidationError as e:
        raise ConfigurationError(owner.name, f"relation '{name}': {e}") from e


@dataclass(frozen=True, eq=False)
class ModelConfig:
    """
    Configuration for one table-backed model.

    Only name and table are required; every behavior is off until its
    column is named.
    """

    # Required
    name: str
    table: Any  # Table or declarative model class

    primary_key: str | None = None

    # Soft delete support (flag True = deleted)
    soft_delete_field: str | None = None
    deleted_at_field: str | None = None

    # Category partitioning
    category_field: str | None = None

    # Sort order
    sort_order_field: str | None = None

    # Cascade relations: {relation name: declaration}, see resolve_relation()
    cascade: Mapping[str, Any] = field(default_factory=dict)

    hooks: LifecycleHooks = field(default_factory=LifecycleHooks)

    def __post_init__(self) -> None:
        table = getattr(self.table, "__table__", self.table)
        if not isinstance(table, Table):
            raise ConfigurationError(self.name, f"{self.table!r} is not a table or mapped class")
        object.__setattr__(self, "table", table)
        object.__setattr__(self, "primary_key", self._resolve_primary_key(table))

        for option in ("soft_delete_field", "deleted_at_field", "category_field", "sort_order_field"):
            column_name = getattr(self, option)
            if column_name is not None and column_name not in table.c:
                raise ConfigurationError(
                    self.name, f"{option} '{column_name}' is not a column of {table.name}"
                )

    def _resolve_primary_key(self, table: Table) -> str:
        if self.primary_key is not None:
            if self.primary_key not in table.c:
                raise ConfigurationError(self.name, f"primary key '{self.primary_key}' is not a column")
            return self.primary_key

        conventional = default_primary_key(table.name)
        if conventional in table.c:
            return conventional

        pk_columns = list(table.primary_key.columns)
        if len(pk_columns) == 1:
            return pk_columns[0].name

        raise ConfigurationError(self.name, "cannot determine a single primary key column")

    def column(self, name: str) -> Column:
        """Column by name."""
        try:
            return self.table.c[name]
        except KeyError:
            raise ConfigurationError(self.name, f"unknown column '{name}'") from None

    @property
    def pk_column(self) -> Column:
        """Primary key column."""
        return self.column(self.primary_key)

    def relations(self) -> list[tuple[str, Relation]]:
        """Cascade relations, resolved from the declarations on every call."""
        return [
            (name, resolve_relation(self, name, options))
            for name, options in self.cascade.items()
        ]


class ModelRegistry:
    """
    Model name -> ModelConfig, and the factory for RecordModel handles.

    Every handle() call returns a new, independently scoped handle, which is
    what lets a model cascade into itself.
    """

    def __init__(self, configs: list[ModelConfig] | None = None):
        self._configs: dict[str, ModelConfig] = {}
        for config in configs or []:
            self.register(config)

    def register(self, config: ModelConfig) -> ModelConfig:
        """Register (or replace) a model configuration."""
        if config.name in self._configs:
            logger.warning("Replacing registered model", model=config.name)
        self._configs[config.name] = config
        return config

    def get(self, name: str) -> ModelConfig:
        """
        Configuration by model name.

        Raises:
            NotFoundError: No model registered under that name.
        """
        config = self._configs.get(name)
        if config is None:
            raise NotFoundError("Model", name)
        return config

    def __contains__(self, name: object) -> bool:
        return name in self._configs

    def names(self) -> list[str]:
        """Registered model names."""
        return list(self._configs)

    def handle(
        self,
        name: str,
        session: Session,
        *,
        chain: CascadeChain | None = None,
    ) -> RecordModel:
        """Create a fresh RecordModel handle for a registered model."""
        from record_store.services.record_model import RecordModel

        return RecordModel(session, self.get(name), registry=self, chain=chain)
