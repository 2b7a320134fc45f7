"""
Opções por operação.

``None`` em qualquer atributo significa "usar o padrão do cliente".
``consistency_level`` e ``retry_policy`` são aplicados no statement ligado;
``ttl`` e ``timestamp`` viram cláusula ``USING`` com bind markers.
"""

from typing import Any, Optional

from cassandra import ConsistencyLevel
from cassandra.policies import RetryPolicy
from pydantic import BaseModel, ConfigDict, Field, field_validator


class _StatementOptions(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="forbid")

    consistency_level: Optional[int] = None
    retry_policy: Optional[Any] = None

    @field_validator("consistency_level", mode="before")
    @classmethod
    def _parse_consistency(cls, value: Any) -> Any:
        # Aceita também o nome: "QUORUM", "local_quorum"...
        if isinstance(value, str):
            try:
                return ConsistencyLevel.name_to_value[value.upper()]
            except KeyError:
                raise ValueError(f"Consistency level desconhecido: {value}")
        return value

    @field_validator("consistency_level")
    @classmethod
    def _check_consistency(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value not in ConsistencyLevel.value_to_name:
            raise ValueError(f"Consistency level desconhecido: {value}")
        return value

    @field_validator("retry_policy")
    @classmethod
    def _check_retry_policy(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, RetryPolicy):
            raise ValueError("retry_policy deve ser uma instância de cassandra.policies.RetryPolicy")
        return value

    def apply_to(self, statement: Any) -> Any:
        """Aplica consistência e política de retry em um statement do driver."""
        if self.consistency_level is not None:
            statement.consistency_level = self.consistency_level
        if self.retry_policy is not None:
            statement.retry_policy = self.retry_policy
        return statement


class ReadOptions(_StatementOptions):
    pass


class BatchOptions(_StatementOptions):
    pass


class WriteOptions(_StatementOptions):
    ttl: Optional[int] = Field(default=None, ge=0)
    # Microssegundos desde a epoch, como no CQL
    timestamp: Optional[int] = Field(default=None, ge=0)
