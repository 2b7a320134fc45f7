# cqlmap/_internal/serialization.py

import datetime
import decimal
import json
import uuid
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Type

if TYPE_CHECKING:
    from ..core.metadata import EntityTypeMetadata
    from ..core.model import Model

# Coluna sintética devolvida pelo Cassandra em escritas condicionais
APPLIED_COLUMN = "[applied]"


def model_to_dict(instance: "Model", by_alias: bool = False) -> Dict[str, Any]:
    """
    Converte a instância em dicionário.

    Com ``by_alias=True`` as chaves são os nomes de coluna em vez dos nomes
    de atributo.
    """
    data = {}
    for name, field_obj in instance.model_fields.items():
        key = name
        if by_alias:
            key = (field_obj.column_name or name).lower()
        data[key] = instance.__dict__.get(name)
    return data


def _json_default(value: Any) -> Any:
    if isinstance(value, (uuid.UUID, decimal.Decimal)):
        return str(value)
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, bytes):
        return value.hex()
    raise TypeError(f"Tipo não serializável em JSON: {type(value).__name__}")


def model_to_json(instance: "Model", by_alias: bool = False, indent: Optional[int] = None) -> str:
    return json.dumps(model_to_dict(instance, by_alias=by_alias), default=_json_default, indent=indent)


def row_to_dict(row: Any) -> Dict[str, Any]:
    """Aceita linhas do ``named_tuple_factory`` (padrão do driver), ``dict_factory`` ou mapeamentos."""
    if row is None:
        return {}
    if isinstance(row, Mapping):
        return dict(row)
    if hasattr(row, "_asdict"):
        return dict(row._asdict())
    raise TypeError(f"Formato de linha não suportado: {type(row).__name__}")


def instance_from_row(metadata: "EntityTypeMetadata", row: Any) -> "Model":
    """
    Cria uma instância a partir de uma linha do banco.

    Colunas desconhecidas (ex: ``[applied]``) são ignoradas. Campos
    obrigatórios ausentes na linha não geram erro: o banco é a fonte da verdade.
    """
    values = row_to_dict(row)
    data = {}
    for field_meta in metadata.fields:
        if field_meta.column_name in values:
            data[field_meta.name] = values[field_meta.column_name]
        elif field_meta.name in values:
            data[field_meta.name] = values[field_meta.name]
    return metadata.entity_class._from_row(data)


def instances_from_rows(metadata: "EntityTypeMetadata", rows: Iterable[Any]) -> List["Model"]:
    return [instance_from_row(metadata, row) for row in rows]
