import pytest

from almoxarifado.domain.models import Categoria
from almoxarifado.infra.migrations import apply_migrations
from almoxarifado.infra.views import create_views
from almoxarifado.usecases.catalogo import cadastrar_produto
from almoxarifado.usecases.registro_seriais import registrar_entrada_seriais


@pytest.fixture
def db(tmp_path):
    db_path = str(tmp_path / "almoxarifado_test.sqlite")
    apply_migrations(db_path)
    create_views(db_path)
    return db_path


@pytest.fixture
def furadeira(db):
    """Produto serializado com quatro unidades disponíveis."""
    p = cadastrar_produto(
        {"code": "FUR-01", "name": "Furadeira de impacto", "category": Categoria.FERRAMENTAS,
         "is_serialized": True, "min_stock": 2},
        db_path=db,
    )
    registrar_entrada_seriais(p.id, ["SN-001", "SN-002", "SN-003", "SN-004"], db_path=db)
    return p


@pytest.fixture
def luva(db):
    """Produto a granel com estoque 10."""
    return cadastrar_produto(
        {"code": "LUV-01", "name": "Luva de vaqueta", "category": Categoria.EPI,
         "current_stock": 10, "min_stock": 5, "unit": "PAR"},
        db_path=db,
    )
