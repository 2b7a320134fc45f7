"""
Configuração de logging do cqlmap.

Todos os módulos usam ``logging.getLogger(__name__)``; esta função apenas
instala um handler no logger raiz do pacote.
"""

import logging
from typing import Optional, Union

from rich.logging import RichHandler

PACKAGE_LOGGER = "cqlmap"

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    rich_output: bool = True,
    fmt: Optional[str] = None,
) -> logging.Logger:
    """
    Configura o logger ``cqlmap``.

    Args:
        level: Nível de log (``"DEBUG"``, ``logging.INFO``...)
        rich_output: Usa ``RichHandler`` quando True, senão um StreamHandler simples
        fmt: Formato opcional para o StreamHandler

    Returns:
        O logger do pacote já configurado
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Nível de log inválido: {level}")

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    # Evita handlers duplicados quando chamado mais de uma vez
    for handler in list(logger.handlers):
        if getattr(handler, "_cqlmap_handler", False):
            logger.removeHandler(handler)

    if rich_output:
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
    handler._cqlmap_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Retorna o logger do pacote ou um filho dele (``cqlmap.<name>``)."""
    if not name:
        return logging.getLogger(PACKAGE_LOGGER)
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
