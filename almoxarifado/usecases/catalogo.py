# almoxarifado/usecases/catalogo.py
"""
UC: Catálogo de produtos.
- cadastrar_produto(): valida e grava um SKU.
- obter_produto(): leitura com NotFound.
- listar_produtos(): filtro opcional por categoria.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from almoxarifado.config import DB_PATH, TENANT_ID
from almoxarifado.domain.errors import NotFound, ValidationError
from almoxarifado.domain.models import Categoria, Produto
from almoxarifado.infra.repositories import ProdutoRepo
from almoxarifado.infra.logger import log_database_operation, log_system_event


def obter_produto(produto_id: Optional[int], db_path: str = DB_PATH, tenant_id: str = TENANT_ID) -> Produto:
    if produto_id is None:
        raise ValidationError("Selecione um produto", campo="product_id")
    produto = ProdutoRepo(db_path, tenant_id).get(produto_id)
    if produto is None:
        raise NotFound("Produto", produto_id)
    return produto


def cadastrar_produto(dados: Dict[str, Any], db_path: str = DB_PATH, tenant_id: str = TENANT_ID) -> Produto:
    """Cadastra um produto após validar os campos obrigatórios."""
    code = (dados.get("code") or "").strip()
    name = (dados.get("name") or "").strip()
    if not code:
        raise ValidationError("Informe o código do produto", campo="code")
    if not name:
        raise ValidationError("Informe o nome do produto", campo="name")
    try:
        categoria = Categoria(dados.get("category"))
    except ValueError:
        raise ValidationError(f"Categoria inválida: {dados.get('category')}", campo="category")

    min_stock = int(dados.get("min_stock") or 0)
    current_stock = int(dados.get("current_stock") or 0)
    if min_stock < 0 or current_stock < 0:
        raise ValidationError("Estoque não pode ser negativo", campo="current_stock")

    repo = ProdutoRepo(db_path, tenant_id)
    if repo.get_by_code(code) is not None:
        raise ValidationError(f"Código já cadastrado: {code}", campo="code", code="DUPLICATE")

    row = dict(dados, code=code, name=name, category=categoria,
               min_stock=min_stock, current_stock=current_stock)
    produto = repo.insert(row)
    log_database_operation("produto", "INSERT", 1, code=code)
    log_system_event("produto_cadastrado", {"id": produto.id, "code": code})
    return produto


def listar_produtos(
    categoria: Optional[Categoria] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> List[Produto]:
    return ProdutoRepo(db_path, tenant_id).get_all(categoria=categoria)
