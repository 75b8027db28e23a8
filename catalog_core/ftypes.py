# catalog_core/ftypes.py
# Maybe / Either для ожидаемых ошибок: поиск без результата, отказ по лимиту плана,
# неизвестный магазин. Исключения остаются только для ошибок программиста.

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")
L = TypeVar("L")
R = TypeVar("R")


@dataclass(frozen=True)
class Maybe(Generic[T]):
    """
    Результат поиска: Maybe.some(value) или Maybe.nothing().
    """

    value: Optional[T]

    def __init__(self, value: Optional[T]):
        object.__setattr__(self, "value", value)

    @staticmethod
    def some(value: T) -> "Maybe[T]":
        return Maybe(value)

    @staticmethod
    def nothing() -> "Maybe[None]":
        return Maybe(None)

    @staticmethod
    def from_optional(value: Optional[T]) -> "Maybe[T]":
        return Maybe.some(value) if value is not None else Maybe.nothing()

    def is_some(self) -> bool:
        return self.value is not None

    def is_none(self) -> bool:
        return self.value is None

    def map(self, fn: Callable[[T], U]) -> "Maybe[U]":
        return Maybe.some(fn(self.value)) if self.is_some() else Maybe.nothing()

    def bind(self, fn: Callable[[T], "Maybe[U]"]) -> "Maybe[U]":
        return fn(self.value) if self.is_some() else Maybe.nothing()

    def get_or_else(self, default: U) -> T | U:
        return self.value if self.is_some() else default

    def to_either(self, error: str) -> "Either[dict, T]":
        """Nothing превращается в Left({"error": error})"""
        return Either.right(self.value) if self.is_some() else Either.fail(error)

    def __repr__(self) -> str:
        return f"Some({self.value})" if self.is_some() else "Nothing"


@dataclass(frozen=True)
class Either(Generic[L, R]):
    """
    Left: отказ (обычно dict вида {"error": "..."}), Right: успешный результат.

    Фабрики: Either.left(val), Either.right(val), Either.fail(message)
    """

    is_left: bool
    value: Union[L, R]

    def __init__(self, is_left: bool, value: Union[L, R]):
        object.__setattr__(self, "is_left", is_left)
        object.__setattr__(self, "value", value)

    @staticmethod
    def left(value: L) -> "Either[L, R]":
        return Either(True, value)

    @staticmethod
    def right(value: R) -> "Either[L, R]":
        return Either(False, value)

    @staticmethod
    def fail(message: str) -> "Either[dict, R]":
        return Either.left({"error": message})

    @property
    def is_right(self) -> bool:
        return not self.is_left

    @property
    def error(self) -> Optional[str]:
        """Текст ошибки для Left({"error": ...}), иначе None"""
        if self.is_right or not isinstance(self.value, dict):
            return None
        return self.value.get("error")

    def map(self, fn: Callable[[R], U]) -> "Either[L, U]":
        return Either.right(fn(self.value)) if self.is_right else self  # type: ignore[return-value]

    def bind(self, fn: Callable[[R], "Either[L, U]"]) -> "Either[L, U]":
        return fn(self.value) if self.is_right else self  # type: ignore[return-value]

    def get_or_else(self, default: U) -> R | U:
        return self.value if self.is_right else default  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"Left({self.value})" if self.is_left else f"Right({self.value})"
