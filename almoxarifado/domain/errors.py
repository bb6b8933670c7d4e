# almoxarifado/domain/errors.py
"""
Hierarquia de erros do almoxarifado.

Todos os erros herdam de ``AlmoxarifadoError`` e carregam um ``code``
legível por máquina, além de atributos estruturados para o chamador
montar a mensagem (inline, toast, CLI) sem precisar interpretar texto.

    AlmoxarifadoError
    +-- ValidationError       campo ausente/curto, quantidade fora da faixa
    +-- NotFound              produto/serial/registro inexistente
    +-- InvalidTransition     status atual não permite a mudança pedida
    +-- PartialBatchFailure   N de M escritas de um lote concluídas
    +-- StoreError            falha do armazenamento (SQLite)

Nenhum destes erros é fatal ao processo: cada um se limita à operação
que o levantou.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class AlmoxarifadoError(Exception):
    code: str = "ALMOXARIFADO_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AlmoxarifadoError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, campo: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.campo = campo
        if code:
            self.code = code


class NotFound(AlmoxarifadoError):
    code = "NOT_FOUND"

    def __init__(self, entidade: str, chave: Any):
        super().__init__(f"{entidade} não encontrado: {chave}")
        self.entidade = entidade
        self.chave = chave


class InvalidTransition(AlmoxarifadoError):
    code = "INVALID_TRANSITION"

    def __init__(self, entidade: str, registro_id: Any, atual: Any, destino: Any):
        atual_v = getattr(atual, "value", atual)
        destino_v = getattr(destino, "value", destino)
        super().__init__(
            f"{entidade} {registro_id}: transição {atual_v} -> {destino_v} não permitida"
        )
        self.entidade = entidade
        self.registro_id = registro_id
        self.atual = atual
        self.destino = destino


class PartialBatchFailure(AlmoxarifadoError):
    code = "PARTIAL_BATCH_FAILURE"

    def __init__(
        self,
        sucessos: int,
        total: int,
        falhas: List[Any],
        detalhes: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(f"{sucessos} de {total} registros concluídos; falharam: {falhas}")
        self.sucessos = sucessos
        self.total = total
        self.falhas = falhas
        self.detalhes = detalhes or []


class StoreError(AlmoxarifadoError):
    code = "STORE_ERROR"

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original
