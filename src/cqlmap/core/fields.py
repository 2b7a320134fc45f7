"""
Tipos de campo usados para declarar entidades.

Cada campo conhece seu tipo CQL (``cql_type``), o tipo Python equivalente
(``python_type``) e como converter valores vindos da aplicação ou do driver
(``to_python``).
"""

import datetime
import decimal
import uuid
from typing import Any, Callable, Optional, Union

from ..utils.exceptions import MappingError


class BaseField:
    cql_type: str = ""
    python_type: type = object
    collection_type: Optional[str] = None

    def __init__(
        self,
        primary_key: bool = False,
        required: bool = False,
        default: Union[Any, Callable[[], Any]] = None,
        index: bool = False,
        column_name: Optional[str] = None,
        version: bool = False,
    ):
        self.primary_key = primary_key
        # Chave primária é sempre obrigatória no momento do save, não na construção
        self.required = required
        self.default = default
        self.index = index
        self.column_name = column_name
        self.version = version

    @property
    def is_collection(self) -> bool:
        return self.collection_type is not None

    def get_cql_type(self) -> str:
        return self.cql_type

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, self.python_type):
            raise TypeError(f"esperado {self.python_type.__name__}, recebido {type(value).__name__}")
        return value

    def __repr__(self) -> str:
        flags = [name for name in ("primary_key", "required", "index", "version") if getattr(self, name)]
        return f"{self.__class__.__name__}({', '.join(flags)})"


class Text(BaseField):
    cql_type = "text"
    python_type = str


class Ascii(Text):
    cql_type = "ascii"

    def to_python(self, value: Any) -> Any:
        value = super().to_python(value)
        if value is not None and not value.isascii():
            raise ValueError("valor contém caracteres não-ASCII")
        return value


class Integer(BaseField):
    cql_type = "int"
    python_type = int

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        # bool é subclasse de int, mas não é um inteiro válido aqui
        if isinstance(value, bool):
            raise TypeError("esperado int, recebido bool")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                raise ValueError(f"'{value}' não é um inteiro")
        raise TypeError(f"esperado int, recebido {type(value).__name__}")


class BigInt(Integer):
    cql_type = "bigint"


class Float(BaseField):
    cql_type = "float"
    python_type = float

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            raise TypeError("esperado float, recebido bool")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                raise ValueError(f"'{value}' não é um número")
        raise TypeError(f"esperado float, recebido {type(value).__name__}")


class Double(Float):
    cql_type = "double"


class Decimal(BaseField):
    cql_type = "decimal"
    python_type = decimal.Decimal

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            raise TypeError("esperado decimal, recebido bool")
        if isinstance(value, decimal.Decimal):
            return value
        if isinstance(value, (int, float, str)):
            try:
                return decimal.Decimal(str(value))
            except decimal.InvalidOperation:
                raise ValueError(f"'{value}' não é um decimal")
        raise TypeError(f"esperado decimal, recebido {type(value).__name__}")


class Boolean(BaseField):
    cql_type = "boolean"
    python_type = bool

    _TRUE = {"true", "1", "yes", "sim"}
    _FALSE = {"false", "0", "no", "nao", "não"}

    def to_python(self, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in self._TRUE:
                return True
            if lowered in self._FALSE:
                return False
            raise ValueError(f"'{value}' não é um booleano")
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        raise TypeError(f"esperado bool, recebido {type(value).__name__}")


class UUID(BaseField):
    cql_type = "uuid"
    python_type = uuid.UUID

    def to_python(self, value: Any) -> Any:
        if value is None or isinstance(value, uuid.UUID):
            return value
        if isinstance(value, str):
            try:
                return uuid.UUID(value)
            except ValueError:
                raise ValueError(f"'{value}' não é um UUID")
        raise TypeError(f"esperado UUID, recebido {type(value).__name__}")


class TimeUUID(UUID):
    cql_type = "timeuuid"

    def to_python(self, value: Any) -> Any:
        value = super().to_python(value)
        if value is not None and value.version != 1:
            raise ValueError("timeuuid exige um UUID versão 1")
        return value


class Timestamp(BaseField):
    cql_type = "timestamp"
    python_type = datetime.datetime

    def to_python(self, value: Any) -> Any:
        if value is None or isinstance(value, datetime.datetime):
            return value
        if isinstance(value, str):
            try:
                return datetime.datetime.fromisoformat(value)
            except ValueError:
                raise ValueError(f"'{value}' não é uma data ISO 8601")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
        raise TypeError(f"esperado datetime, recebido {type(value).__name__}")


class Date(BaseField):
    cql_type = "date"
    python_type = datetime.date

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        if isinstance(value, str):
            try:
                return datetime.date.fromisoformat(value)
            except ValueError:
                raise ValueError(f"'{value}' não é uma data ISO 8601")
        # cassandra.util.Date
        if hasattr(value, "date") and callable(value.date):
            return value.date()
        raise TypeError(f"esperado date, recebido {type(value).__name__}")


class Blob(BaseField):
    cql_type = "blob"
    python_type = bytes

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        raise TypeError(f"esperado bytes, recebido {type(value).__name__}")


# --- Coleções ---

class _CollectionField(BaseField):
    @staticmethod
    def _check_item_field(field: Any, role: str) -> BaseField:
        if isinstance(field, type) and issubclass(field, BaseField):
            field = field()
        if not isinstance(field, BaseField):
            raise MappingError(f"O tipo de {role} deve ser um campo, recebido: {field!r}")
        if field.is_collection:
            raise MappingError("Coleções aninhadas não são suportadas")
        return field


class List(_CollectionField):
    python_type = list
    collection_type = "list"

    def __init__(self, item_field: Any, **kwargs: Any):
        super().__init__(**kwargs)
        self.item_field = self._check_item_field(item_field, "item")

    def get_cql_type(self) -> str:
        return f"list<{self.item_field.get_cql_type()}>"

    def item_to_python(self, item: Any) -> Any:
        return self.item_field.to_python(item)

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (str, bytes, dict)) or not hasattr(value, "__iter__"):
            raise TypeError(f"esperado list, recebido {type(value).__name__}")
        return [self.item_to_python(item) for item in value]


class Set(_CollectionField):
    python_type = set
    collection_type = "set"

    def __init__(self, item_field: Any, **kwargs: Any):
        super().__init__(**kwargs)
        self.item_field = self._check_item_field(item_field, "item")

    def get_cql_type(self) -> str:
        return f"set<{self.item_field.get_cql_type()}>"

    def item_to_python(self, item: Any) -> Any:
        return self.item_field.to_python(item)

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        # SortedSet do driver também é iterável
        if isinstance(value, (str, bytes, dict)) or not hasattr(value, "__iter__"):
            raise TypeError(f"esperado set, recebido {type(value).__name__}")
        return {self.item_to_python(item) for item in value}


class Map(_CollectionField):
    python_type = dict
    collection_type = "map"

    def __init__(self, key_field: Any, value_field: Any, **kwargs: Any):
        super().__init__(**kwargs)
        self.key_field = self._check_item_field(key_field, "chave")
        self.value_field = self._check_item_field(value_field, "valor")

    def get_cql_type(self) -> str:
        return f"map<{self.key_field.get_cql_type()}, {self.value_field.get_cql_type()}>"

    def key_to_python(self, key: Any) -> Any:
        return self.key_field.to_python(key)

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if not hasattr(value, "items"):
            raise TypeError(f"esperado dict, recebido {type(value).__name__}")
        return {self.key_to_python(k): self.value_field.to_python(v) for k, v in value.items()}
