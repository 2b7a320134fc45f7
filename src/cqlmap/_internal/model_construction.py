# cqlmap/_internal/model_construction.py

from typing import Any, Dict

from ..core.fields import BaseField


class ModelMetaclass(type):
    """
    Coleta os campos declarados na classe (na ordem de declaração, incluindo
    os herdados) em ``model_fields``.

    Os metadados completos (colunas, chave, versão) são derivados depois, sob
    demanda, pelo registro em ``cqlmap.core.metadata``.
    """

    def __new__(mcs, name: str, bases: tuple, attrs: Dict[str, Any]):
        fields: Dict[str, BaseField] = {}
        for base in reversed(bases):
            fields.update(getattr(base, "model_fields", {}) or {})

        declared = {key: value for key, value in attrs.items() if isinstance(value, BaseField)}
        for key in declared:
            attrs.pop(key)
        fields.update(declared)

        attrs["model_fields"] = fields
        attrs.setdefault("__abstract__", False)
        if "__table_name__" not in attrs or not attrs["__table_name__"]:
            attrs["__table_name__"] = f"{name.lower()}s"

        return super().__new__(mcs, name, bases, attrs)
