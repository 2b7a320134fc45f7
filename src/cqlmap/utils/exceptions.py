"""
Exceções do cqlmap.

Erros do driver (timeouts, Unavailable, InvalidRequest...) não são
encapsulados: passam intactos para quem chamou.
"""

from typing import Optional


class CqlMapError(Exception):
    """Base para todos os erros levantados pelo cqlmap."""


class MappingError(CqlMapError):
    """Metadados da entidade inválidos ou propriedade inexistente."""


class ValidationError(MappingError):
    """Valor incompatível com o tipo declarado do campo."""


class UnsupportedOperationError(MappingError):
    """Operação de coleção aplicada a um tipo incompatível (ex: prepend em set)."""


class SchemaSyncError(CqlMapError):
    """Falha ao sincronizar o schema remoto (DDL rejeitado, keyspace ausente...)."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class ConnectionError(CqlMapError):
    """Falha ao conectar ao cluster."""
