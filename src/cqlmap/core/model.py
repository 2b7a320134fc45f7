# cqlmap/core/model.py

import logging
from typing import Any, ClassVar, Dict, Optional, Type

from typing_extensions import Self

from .._internal.model_construction import ModelMetaclass
from .._internal.serialization import model_to_dict, model_to_json
from ..utils.exceptions import ValidationError
from .fields import BaseField

logger = logging.getLogger(__name__)


class Model(metaclass=ModelMetaclass):
    """
    Base das entidades persistidas.

    Uma entidade é um objeto de dados simples: a persistência é feita por
    ``MappingSession``. Exemplo::

        class User(Model):
            __table_name__ = "users"
            id = UUID(primary_key=True)
            name = Text()
            tags = Set(Text())
            version = BigInt(version=True)
    """

    __abstract__ = True
    # --- Atributos que a metaclasse irá preencher ---
    __table_name__: ClassVar[str]
    __keyspace__: ClassVar[Optional[str]] = None
    model_fields: ClassVar[Dict[str, BaseField]]

    def __init__(self, **kwargs: Any):
        unknown = set(kwargs) - set(self.model_fields)
        if unknown:
            raise ValidationError(
                f"Campos desconhecidos para {self.__class__.__name__}: {', '.join(sorted(unknown))}"
            )

        for key, field_obj in self.model_fields.items():
            value = kwargs.get(key)

            # Aplicar default se valor for None
            if value is None and field_obj.default is not None:
                value = field_obj.default() if callable(field_obj.default) else field_obj.default

            # Inicializar coleções vazias se valor ainda for None
            if value is None and field_obj.is_collection:
                value = self._initialize_empty_collection(field_obj.python_type)

            if value is None and field_obj.required:
                raise ValidationError(f"Campo '{key}' é obrigatório e não foi fornecido.")

            self.__dict__[key] = self._convert(key, field_obj, value)

    @staticmethod
    def _initialize_empty_collection(python_type: type) -> Any:
        if python_type is list:
            return []
        elif python_type is set:
            return set()
        elif python_type is dict:
            return {}
        return None

    @staticmethod
    def _convert(key: str, field_obj: BaseField, value: Any) -> Any:
        if value is None:
            return None
        try:
            return field_obj.to_python(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Valor inválido para campo '{key}': {e}")

    @classmethod
    def _from_row(cls, data: Dict[str, Any]) -> Self:
        """Monta a instância com valores vindos do banco, sem checar campos obrigatórios."""
        instance = cls.__new__(cls)
        for key, field_obj in cls.model_fields.items():
            value = data.get(key)
            if value is None and field_obj.is_collection:
                # Coleção vazia no Cassandra volta como null
                value = cls._initialize_empty_collection(field_obj.python_type)
            instance.__dict__[key] = cls._convert(key, field_obj, value)
        return instance

    def __setattr__(self, key: str, value: Any):
        if key in self.model_fields:
            self.__dict__[key] = value
        else:
            super().__setattr__(key, value)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Model) or type(self) is not type(other):
            return NotImplemented
        return self.model_dump() == other.model_dump()

    def model_dump(self, by_alias: bool = False) -> Dict[str, Any]:
        return model_to_dict(self, by_alias=by_alias)

    def model_dump_json(self, by_alias: bool = False, indent: Optional[int] = None) -> str:
        return model_to_json(self, by_alias=by_alias, indent=indent)

    def copy(self, **changes: Any) -> Self:
        """Cópia rasa da instância com ``changes`` aplicados."""
        data = self.model_dump()
        for key, value in data.items():
            if isinstance(value, (list, set, dict)):
                data[key] = type(value)(value)
        data.update(changes)
        return self.__class__._from_row(data)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.model_dump()}>"

    @classmethod
    def create_model(cls, name: str, fields: Dict[str, BaseField], table_name: Optional[str] = None) -> Type["Model"]:
        """
        Cria dinamicamente um novo modelo.

        Args:
            name: Nome da classe do modelo
            fields: Dicionário de campos {nome: campo}
            table_name: Nome da tabela (opcional, usa o nome da classe se não fornecido)
        """
        attrs: Dict[str, Any] = dict(fields)
        if table_name:
            attrs["__table_name__"] = table_name
        return ModelMetaclass(name, (cls,), attrs)
