"""
Configuração do cqlmap.

Ordem de precedência: valores padrão < ``cqlmap.toml`` < variáveis de ambiente
< argumentos explícitos passados para ``load_config``.
"""

import logging
import os
import tomllib
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "cqlmap.toml"
ENV_PREFIX = "CQLMAP_"


class MappingConfig(BaseModel):
    """Parâmetros de conexão e do mapeamento."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    hosts: List[str] = Field(default_factory=lambda: ["127.0.0.1"])
    port: int = Field(default=9042, ge=1, le=65535)
    keyspace: Optional[str] = None
    do_not_sync: bool = False
    statement_cache_size: int = Field(default=1000, ge=1)
    mismatch_policy: Literal["warn", "error"] = "warn"
    log_level: str = "INFO"

    @field_validator("hosts", mode="before")
    @classmethod
    def _split_hosts(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [h.strip() for h in value.split(",") if h.strip()]
        return value

    @field_validator("hosts")
    @classmethod
    def _hosts_not_empty(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("Ao menos um host deve ser informado")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Nível de log inválido: {value}")
        return level


def _read_toml(path: str) -> Dict[str, Any]:
    with open(path, "rb") as f:
        toml_config = tomllib.load(f)

    values: Dict[str, Any] = {}
    cassandra_config = toml_config.get("cassandra", {})
    for key in ("hosts", "port", "keyspace"):
        if key in cassandra_config:
            values[key] = cassandra_config[key]

    mapping_config = toml_config.get("mapping", {})
    for key in ("do_not_sync", "statement_cache_size", "mismatch_policy", "log_level"):
        if key in mapping_config:
            values[key] = mapping_config[key]
    return values


def _read_env() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key in MappingConfig.model_fields:
        raw = os.getenv(ENV_PREFIX + key.upper())
        if raw is not None and raw != "":
            values[key] = raw
    return values


def load_config(path: Optional[str] = None, **overrides: Any) -> MappingConfig:
    """
    Carrega a configuração do arquivo TOML, do ambiente e dos ``overrides``.

    Args:
        path: Caminho do arquivo TOML. Padrão: ``./cqlmap.toml`` se existir.
        **overrides: Valores explícitos com maior precedência.

    Raises:
        ValueError: Se algum valor final for inválido.
    """
    values: Dict[str, Any] = {}

    config_path = path or os.path.join(os.getcwd(), CONFIG_FILE_NAME)
    if os.path.exists(config_path):
        try:
            values.update(_read_toml(config_path))
            logger.debug(f"Configuração lida de {config_path}")
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Erro ao ler {config_path}: {e}")
    elif path:
        raise FileNotFoundError(f"Arquivo de configuração não encontrado: {path}")

    values.update(_read_env())
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return MappingConfig(**values)
    except PydanticValidationError as e:
        raise ValueError(f"Configuração inválida: {e}") from e
