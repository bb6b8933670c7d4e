# almoxarifado/config.py
"""
Configurações globais e valores padrão do almoxarifado.
"""

import os
from dataclasses import dataclass


# Caminho padrão do banco de dados SQLite
DB_PATH = os.environ.get("ALMOXARIFADO_DB", os.path.join(os.getcwd(), "almoxarifado.db"))

# Tenant usado quando o chamador não informa outro
TENANT_ID = os.environ.get("ALMOXARIFADO_TENANT", "default")


@dataclass
class DefaultConfig:
    """Valores padrão para regras de validação."""
    descricao_min_chars: int = 10  # descrição mínima de uma ocorrência
    quantidade_min: int = 1


# Instância global dos valores padrão
DEFAULTS = DefaultConfig()
