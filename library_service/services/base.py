import dataclasses
import logging
from datetime import date
from typing import Any, Callable, Generic, List, Mapping, Optional, Tuple, TypeVar

from library_service.errors import FieldViolation, NotFoundError, ValidationError
from library_service.repository import QueryResult, Repository, Store
from library_service.validators import validate_filters, validate_patch

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], date]


class EntityService(Generic[T]):
    """Shared create/get/update/delete/query workflow for one entity type.

    Subclasses name the repository, the fields a patch may touch and the
    validation rule; they add their own business rules through the hooks.
    """

    entity_name = "entity"
    repository_name = ""
    updatable_fields: Tuple[str, ...] = ()

    def __init__(self, store: Store, clock: Optional[Clock] = None) -> None:
        self.store = store
        self.clock = clock or date.today

    @property
    def repository(self) -> Repository[T]:
        return getattr(self.store, self.repository_name)

    # ------------------------- Hooks ------------------------- #
    def validate(self, entity: T) -> List[FieldViolation]:
        raise NotImplementedError

    def prepare(self, entity: T) -> T:
        """Normalize a candidate before validation. Must return a new object."""
        return entity

    def before_delete(self, entity: T) -> None:
        return None

    # ------------------------- Core operations ------------------------- #
    def _ensure_valid(self, entity: T) -> None:
        violations = self.validate(entity)
        if violations:
            logger.warning("Rejected %s: %s", self.entity_name, ", ".join(v.field for v in violations))
            raise ValidationError(violations, entity=self.entity_name)

    def create(self, entity: T) -> T:
        """Validate and persist a new entity. The candidate itself is left untouched."""
        if entity.id is not None:
            raise ValidationError(
                [FieldViolation("id", "immutable", "id is assigned by the store")], entity=self.entity_name
            )
        candidate = self.prepare(dataclasses.replace(entity))
        self._ensure_valid(candidate)
        with self.store.atomic():
            created = self.repository.add(candidate)
        logger.info("Created %s %s", self.entity_name, created.id)
        return created

    def get(self, entity_id: int) -> T:
        entity = self.repository.get(entity_id)
        if entity is None:
            raise NotFoundError(self.entity_name, entity_id)
        return entity

    def update(self, entity_id: int, patch: Mapping[str, Any]) -> T:
        violations = validate_patch(patch, self._field_names(), self.updatable_fields)
        with self.store.atomic():
            existing = self.get(entity_id)
            if violations:
                raise ValidationError(violations, entity=self.entity_name)
            candidate = self.prepare(dataclasses.replace(existing, **dict(patch)))
            self._ensure_valid(candidate)
            updated = self.repository.update(candidate)
            if updated is None:
                raise NotFoundError(self.entity_name, entity_id)
        logger.info("Updated %s %s (%s)", self.entity_name, entity_id, ", ".join(patch))
        return updated

    def delete(self, entity_id: int) -> None:
        with self.store.atomic():
            entity = self.get(entity_id)
            self.before_delete(entity)
            if not self.repository.remove(entity_id):
                raise NotFoundError(self.entity_name, entity_id)
        logger.info("Deleted %s %s", self.entity_name, entity_id)

    def query(self, filters: Optional[Mapping[str, Any]] = None) -> QueryResult[T]:
        filters = dict(filters or {})
        violations = validate_filters(filters, self._field_names())
        if violations:
            raise ValidationError(violations, entity=self.entity_name)
        return QueryResult(lambda: self.repository.query(filters))

    def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        filters = dict(filters or {})
        violations = validate_filters(filters, self._field_names())
        if violations:
            raise ValidationError(violations, entity=self.entity_name)
        return self.repository.count(filters)

    def _field_names(self) -> List[str]:
        return self.repository.entity_cls.field_names()
