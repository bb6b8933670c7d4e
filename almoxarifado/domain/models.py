# almoxarifado/domain/models.py
"""
Modelos (dataclasses) e enumerações do domínio.

Observação importante:
- Os repositórios aceitam dicionários; as dataclasses são opcionais
  e servem para tipagem/clareza. Use-as quando fizer sentido.
- As enumerações herdam de ``str``: o valor gravado no SQLite é o próprio
  membro, e comparações com literais continuam funcionando.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class Categoria(str, Enum):
    EPI = "epi"
    EPC = "epc"
    FERRAMENTAS = "ferramentas"
    MATERIAIS = "materiais"
    EQUIPAMENTOS = "equipamentos"


class StatusSerial(str, Enum):
    DISPONIVEL = "disponivel"
    EM_USO = "em_uso"
    EM_MANUTENCAO = "em_manutencao"
    DESCARTADO = "descartado"


class TipoAuditoria(str, Enum):
    DEFEITO = "defeito"
    FURTO = "furto"
    GARANTIA = "garantia"
    INVENTARIO = "inventario"
    RESOLUCAO = "resolucao"


class StatusAuditoria(str, Enum):
    ABERTO = "aberto"
    EM_ANALISE = "em_analise"
    RESOLVIDO = "resolvido"
    CANCELADO = "cancelado"
    ENVIADO = "enviado"
    RECEBIDO = "recebido"


class TipoAtivo(str, Enum):
    SERIAL = "serial_number"
    PRODUTO = "product"


class TipoMovimentacao(str, Enum):
    ENTRADA = "entrada"
    SAIDA = "saida"
    DEVOLUCAO = "devolucao"
    AJUSTE = "ajuste"


class Desfecho(str, Enum):
    """Resultado de uma ocorrência de defeito/furto ao ser resolvida."""
    RETORNO = "retorno"    # volta ao estoque
    DESCARTE = "descarte"  # baixa definitiva


# -------------------------
# Registros
# -------------------------

@dataclass
class Produto:
    """Cadastro de produto (SKU)."""
    code: str
    name: str
    category: Categoria
    is_serialized: bool = False
    current_stock: int = 0
    min_stock: int = 0
    max_stock: Optional[int] = None
    unit: str = "UN"
    is_active: bool = True
    id: Optional[int] = None
    tenant_id: Optional[str] = None


@dataclass
class NumeroSerie:
    """Unidade física rastreada individualmente."""
    product_id: int
    serial_number: str
    status: StatusSerial = StatusSerial.DISPONIVEL
    assigned_to: Optional[str] = None
    assigned_at: Optional[str] = None
    location: Optional[str] = None
    id: Optional[int] = None
    tenant_id: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class Auditoria:
    """Ocorrência registrada contra um produto ou uma unidade serializada."""
    product_id: int
    audit_type: TipoAuditoria
    status: StatusAuditoria
    quantity: int
    description: str
    serial_number_id: Optional[int] = None
    parent_audit_id: Optional[int] = None
    reported_by: Optional[str] = None
    reported_at: Optional[str] = None
    resolved_at: Optional[str] = None
    resolution_notes: Optional[str] = None
    id: Optional[int] = None
    tenant_id: Optional[str] = None


@dataclass
class Cautela:
    """Atribuição de custódia de um item a um técnico/colaborador."""
    technician_id: str
    asset_type: TipoAtivo
    quantity: int
    assigned_at: str
    notes: str
    serial_number_id: Optional[int] = None
    product_id: Optional[int] = None
    returned_at: Optional[str] = None
    id: Optional[int] = None
    tenant_id: Optional[str] = None

    @property
    def ativa(self) -> bool:
        return self.returned_at is None


# -------------------------
# Entradas de casos de uso
# -------------------------

@dataclass
class NovaAuditoria:
    """Dados informados pelo operador para abrir uma ocorrência."""
    product_id: Optional[int]
    audit_type: TipoAuditoria
    description: str
    quantity: int = 1
    serial_number_id: Optional[int] = None
    status: Optional[StatusAuditoria] = None
    parent_audit_id: Optional[int] = None
    reported_by: Optional[str] = None


@dataclass(frozen=True)
class AtivoSerial:
    serial_id: int


@dataclass(frozen=True)
class AtivoProduto:
    produto_id: int


Ativo = Union[AtivoSerial, AtivoProduto]


# -------------------------
# Saldo: contado (granel) x derivado (serializado)
# -------------------------

@dataclass(frozen=True)
class Contado:
    """Saldo autoritativo guardado no cadastro do produto (granel)."""
    quantidade: int


@dataclass(frozen=True)
class DerivadoDeSeriais:
    """Saldo calculado a partir das unidades não descartadas."""
    produto_id: int
    quantidade: int


Saldo = Union[Contado, DerivadoDeSeriais]


# -------------------------
# Resultados
# -------------------------

@dataclass
class ResultadoLote:
    """Acumulador de uma operação em lote (escritas independentes)."""
    sucesso: List[Any] = field(default_factory=list)
    falhas: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.sucesso) + len(self.falhas)

    @property
    def parcial(self) -> bool:
        return bool(self.falhas)

    def ids_falhos(self) -> List[Any]:
        return [f["id"] for f in self.falhas]

    def levantar_se_parcial(self) -> None:
        """Converte falhas acumuladas em ``PartialBatchFailure``."""
        from almoxarifado.domain.errors import PartialBatchFailure

        if self.falhas:
            raise PartialBatchFailure(
                sucessos=len(self.sucesso),
                total=self.total,
                falhas=self.ids_falhos(),
                detalhes=list(self.falhas),
            )


@dataclass
class ResultadoInventario:
    auditoria: Auditoria
    estoque_atualizado: bool


@dataclass
class SaudeEstoque:
    """Partição de uma categoria em produtos zerados e abaixo do mínimo."""
    categoria: Categoria
    zerados: int = 0
    baixos: int = 0


@dataclass(frozen=True)
class Badge:
    severidade: Optional[str]  # 'zero' | 'baixo' | None
    contagem: int
