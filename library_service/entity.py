from __future__ import annotations

from dataclasses import fields
from datetime import date
from enum import Enum
from typing import Any, List, Optional, Type, TypeVar

E = TypeVar("E", bound=Enum)


class Entity:
    """Kimliği olan kalıcı alan nesnelerinin ortak tabanı.

    ``id`` bir kez atandıktan sonra değiştirilemez; yeni bir kimlik yalnızca
    ``dataclasses.replace`` ile oluşturulan yeni bir nesnede olabilir.
    """

    id: Optional[int]

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id":
            current = self.__dict__.get("id")
            if current is not None and value != current:
                raise AttributeError(f"{type(self).__name__}.id is immutable once assigned")
        super().__setattr__(name, value)

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]


def coerce_enum(enum_cls: Type[E], value: Any) -> Any:
    """Geçerli bir dizeyi enum üyesine çevir; aksi halde değeri olduğu gibi bırak (doğrulama yakalar)."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return value


def coerce_date(value: Any) -> Any:
    if value is None or isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return value
    return value


def strip_text(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def to_storage_value(value: Any) -> Any:
    """Bir alan değerini depolama satırındaki karşılığına dönüştür."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value
