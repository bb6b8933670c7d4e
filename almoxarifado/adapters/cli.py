# almoxarifado/adapters/cli.py
"""
CLI do almoxarifado (Typer).

Comandos principais:
- migrate                          -> aplica migrações e cria views
- logs [tipo]                      -> últimas linhas de um log
- produto add|list|saldo|importar|movimentacoes
- serial entrada|disponiveis|buscar|status
- auditoria abrir|listar|resolver|status|garantia-lote|receber-garantia|garantias|resumo
- inventario contar|saude|alertas
- cautela emitir|devolver|ativas|ficha

Todos os comandos aceitam ``--db`` e ``--tenant``. Erros do domínio são
exibidos num painel e o processo termina com código 1 (lotes com falha
parcial também).
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from almoxarifado.config import DB_PATH, TENANT_ID
from almoxarifado.adapters.planilhas import (
    exportar_ficha_cautela, exportar_relatorio, load_produtos, load_seriais
)
from almoxarifado.domain.errors import AlmoxarifadoError, PartialBatchFailure
from almoxarifado.domain.models import (
    AtivoProduto, AtivoSerial, Categoria, DerivadoDeSeriais, Desfecho, NovaAuditoria,
    ResultadoLote, StatusAuditoria, StatusSerial, TipoAuditoria,
)
from almoxarifado.domain.policies import ROTULOS_CATEGORIA, ROTULOS_STATUS_SERIAL
from almoxarifado.infra.logger import get_log_summary
from almoxarifado.infra.migrations import apply_migrations
from almoxarifado.infra.views import create_views
from almoxarifado.usecases import auditorias, cautelas, catalogo, reconciliacao, registro_seriais
from almoxarifado.usecases.relatorios import (
    relatorio_auditorias,
    relatorio_cautelas_ativas,
    relatorio_garantias_pendentes,
    relatorio_movimentacoes,
    relatorio_saude_estoque,
)


app = typer.Typer(help="Almoxarifado — integridade de estoque (CLI)")
console = Console()

DB_OPT = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")
TENANT_OPT = typer.Option(TENANT_ID, "--tenant", help="Tenant (empresa)")


# -----------------------
# util
# -----------------------

def _print_json(obj) -> None:
    typer.echo(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


def _db(db_path: str) -> str:
    """Garante o schema antes de qualquer comando (idempotente)."""
    apply_migrations(db_path)
    create_views(db_path)
    return db_path


def _fmt(val: Any) -> str:
    if val is None:
        return ""
    if isinstance(val, Enum):
        return str(val.value)
    if isinstance(val, bool):
        return "sim" if val else "não"
    return str(val)


@contextmanager
def _erros():
    """Converte erros do domínio em painel + código de saída 1."""
    try:
        yield
    except PartialBatchFailure as e:
        console.print(Panel(
            f"{e.sucessos} de {e.total} concluídos\nFalharam: {', '.join(map(str, e.falhas))}",
            title=e.code, border_style="yellow",
        ))
        raise typer.Exit(code=1)
    except AlmoxarifadoError as e:
        console.print(Panel(e.message, title=e.code, border_style="red"))
        raise typer.Exit(code=1)


def _display_table(data: Any, title: str = "Resultado") -> None:
    """Exibe registros (dataclasses/dicts) ou relatórios ``(colunas, linhas, msg)``."""
    if isinstance(data, tuple) and len(data) == 3:
        columns, rows, msg = data
        if not rows:
            console.print(Panel(msg or "Nenhum dado encontrado", title=title, border_style="yellow"))
            return
        table = Table(title=title, box=box.ROUNDED)
        for col in columns:
            justify = "right" if col.lower() in ("qtd", "estoque", "mínimo", "anterior", "novo") else "left"
            table.add_column(col, justify=justify)
        for row in rows:
            table.add_row(*[_fmt(v) for v in row])
        console.print(table)
        return

    if is_dataclass(data):
        data = [data]
    if not data:
        console.print(Panel("Nenhum dado encontrado", title=title, border_style="yellow"))
        return

    if isinstance(data, list):
        registros = [asdict(d) if is_dataclass(d) else dict(d) for d in data]
        table = Table(title=title, box=box.ROUNDED)
        columns = list(registros[0].keys())
        for column in columns:
            if column in ("current_stock", "min_stock", "quantity", "contagem"):
                table.add_column(column, justify="right")
            else:
                table.add_column(column)
        for r in registros:
            values = []
            for col in columns:
                val = r.get(col)
                if col == "status" and val is not None:
                    status_val = _fmt(val)
                    if status_val in ("descartado", "cancelado"):
                        values.append(f"[bold red]{status_val}[/]")
                    elif status_val in ("em_manutencao", "aberto", "enviado"):
                        values.append(f"[bold yellow]{status_val}[/]")
                    elif status_val in ("disponivel", "resolvido", "recebido"):
                        values.append(f"[bold green]{status_val}[/]")
                    else:
                        values.append(status_val)
                else:
                    values.append(_fmt(val))
            table.add_row(*values)
        console.print(table)
        return

    _print_json(data)


def _display_lote(res: ResultadoLote, title: str) -> None:
    console.print(Panel(
        f"Total: {res.total}\nConcluídos: {len(res.sucesso)}\nFalhas: {len(res.falhas)}",
        title=title, border_style="yellow" if res.parcial else "green",
    ))
    if res.falhas:
        erro_table = Table(title="Falhas")
        erro_table.add_column("ID")
        erro_table.add_column("Código")
        erro_table.add_column("Erro")
        for f in res.falhas:
            erro_table.add_row(str(f["id"]), f.get("code", ""), f.get("erro", ""))
        console.print(erro_table)


# -----------------------
# infra
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = DB_OPT):
    """Aplica migrações e recria as views auxiliares."""
    _db(db_path)
    typer.echo(f">> Migrações aplicadas e views criadas em: {db_path}")


@app.command("logs")
def cmd_logs(
    tipo: str = typer.Argument("transactions", help="transactions|seriais|auditorias|cautelas|database|system"),
    linhas: int = typer.Option(50, "--linhas"),
):
    """Mostra as últimas linhas de um arquivo de log."""
    resumo = get_log_summary(tipo, lines=linhas)
    if resumo is None:
        typer.echo("Logging desabilitado (defina ALMOXARIFADO_LOG=1).")
        return
    typer.echo(resumo)


# -----------------------
# produtos
# -----------------------

produto_app = typer.Typer(help="Cadastro de produtos")
app.add_typer(produto_app, name="produto")


@produto_app.command("add")
def cmd_produto_add(
    code: str = typer.Option(..., "--code", help="Código (SKU)"),
    name: str = typer.Option(..., "--name", help="Nome do produto"),
    category: Categoria = typer.Option(..., "--category", help="Categoria"),
    serializado: bool = typer.Option(False, "--serializado", help="Controle por número de série"),
    estoque: int = typer.Option(0, "--estoque", help="Estoque inicial (granel)"),
    minimo: int = typer.Option(0, "--minimo", help="Estoque mínimo"),
    unidade: str = typer.Option("UN", "--unidade"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Cadastra um produto."""
    with _erros():
        p = catalogo.cadastrar_produto({
            "code": code, "name": name, "category": category, "is_serialized": serializado,
            "current_stock": 0 if serializado else estoque, "min_stock": minimo, "unit": unidade,
        }, db_path=_db(db_path), tenant_id=tenant)
    _display_table(p, title="Produto Cadastrado")


@produto_app.command("list")
def cmd_produto_list(
    categoria: Optional[Categoria] = typer.Option(None, "--categoria"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Lista os produtos ativos."""
    with _erros():
        itens = catalogo.listar_produtos(categoria, db_path=_db(db_path), tenant_id=tenant)
    titulo = f"Produtos — {ROTULOS_CATEGORIA[categoria]}" if categoria else "Produtos"
    _display_table(itens, title=titulo)


@produto_app.command("saldo")
def cmd_produto_saldo(
    produto_id: int = typer.Argument(...),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Mostra o saldo autoritativo (contado ou derivado dos seriais)."""
    with _erros():
        saldo = registro_seriais.saldo_produto(produto_id, db_path=_db(db_path), tenant_id=tenant)
    origem = "derivado dos números de série" if isinstance(saldo, DerivadoDeSeriais) else "contado"
    typer.echo(f"Produto {produto_id}: {saldo.quantidade} ({origem})")


@produto_app.command("importar")
def cmd_produto_importar(
    path: str = typer.Argument(..., help="XLSX/CSV com o cadastro"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Importa produtos de uma planilha (uma linha por produto)."""
    res = ResultadoLote()
    with _erros():
        linhas = load_produtos(path)
        db = _db(db_path)
        for i, dados in enumerate(linhas, start=2):
            try:
                res.sucesso.append(catalogo.cadastrar_produto(dados, db_path=db, tenant_id=tenant))
            except AlmoxarifadoError as e:
                res.falhas.append({"id": f"linha {i}", "code": e.code, "erro": e.message})
        _display_lote(res, title="Importação de Produtos")
        res.levantar_se_parcial()


@produto_app.command("movimentacoes")
def cmd_produto_movimentacoes(
    produto_id: Optional[int] = typer.Argument(None),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Histórico de movimentações de estoque."""
    with _erros():
        res = relatorio_movimentacoes(produto_id, db_path=_db(db_path), tenant_id=tenant)
    _display_table(res, title="Movimentações")


# -----------------------
# números de série
# -----------------------

serial_app = typer.Typer(help="Registro de números de série")
app.add_typer(serial_app, name="serial")


@serial_app.command("entrada")
def cmd_serial_entrada(
    produto_id: int = typer.Argument(...),
    seriais: Optional[List[str]] = typer.Argument(None, help="Números de série"),
    arquivo: Optional[str] = typer.Option(None, "--arquivo", help="XLSX/CSV com a coluna de seriais"),
    motivo: Optional[str] = typer.Option(None, "--motivo"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Dá entrada de unidades serializadas (argumentos e/ou planilha)."""
    with _erros():
        lista = list(seriais or [])
        if arquivo:
            lista.extend(load_seriais(arquivo))
        criados = registro_seriais.registrar_entrada_seriais(
            produto_id, lista, motivo, db_path=_db(db_path), tenant_id=tenant
        )
    _display_table(criados, title=f"{len(criados)} unidade(s) registrada(s)")


@serial_app.command("disponiveis")
def cmd_serial_disponiveis(
    produto_id: int = typer.Argument(...),
    status: StatusSerial = typer.Option(StatusSerial.DISPONIVEL, "--status"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Lista as unidades do produto no status informado."""
    with _erros():
        itens = registro_seriais.find_available(produto_id, status, db_path=_db(db_path), tenant_id=tenant)
    _display_table(itens, title=f"Unidades — {ROTULOS_STATUS_SERIAL[status]}")


@serial_app.command("buscar")
def cmd_serial_buscar(
    texto: str = typer.Argument(..., help="Serial lido ou digitado"),
    produto_id: Optional[int] = typer.Option(None, "--produto"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Localiza uma unidade pelo número de série."""
    with _erros():
        u = registro_seriais.resolve_by_serial_text(texto, produto_id, db_path=_db(db_path), tenant_id=tenant)
    _display_table(u, title="Unidade")


@serial_app.command("status")
def cmd_serial_status(
    serial_id: int = typer.Argument(...),
    novo_status: StatusSerial = typer.Argument(...),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Altera o status de uma unidade respeitando o ciclo de vida."""
    with _erros():
        u = registro_seriais.transition(serial_id, novo_status, db_path=_db(db_path), tenant_id=tenant)
    _display_table(u, title="Status Atualizado")


# -----------------------
# auditorias
# -----------------------

auditoria_app = typer.Typer(help="Ocorrências: defeito, furto, garantia, inventário, resolução")
app.add_typer(auditoria_app, name="auditoria")


@auditoria_app.command("abrir")
def cmd_auditoria_abrir(
    produto_id: int = typer.Option(..., "--produto"),
    tipo: TipoAuditoria = typer.Option(..., "--tipo"),
    descricao: str = typer.Option(..., "--descricao"),
    serial_id: Optional[int] = typer.Option(None, "--serial"),
    quantidade: int = typer.Option(1, "--qtd"),
    reported_by: Optional[str] = typer.Option(None, "--por", help="Quem registrou"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Registra uma ocorrência."""
    with _erros():
        a = auditorias.open_audit(
            NovaAuditoria(product_id=produto_id, audit_type=tipo, description=descricao,
                          quantity=quantidade, serial_number_id=serial_id, reported_by=reported_by),
            db_path=_db(db_path), tenant_id=tenant,
        )
    _display_table(a, title="Ocorrência Registrada")


@auditoria_app.command("listar")
def cmd_auditoria_listar(
    tipo: Optional[TipoAuditoria] = typer.Option(None, "--tipo"),
    status: Optional[StatusAuditoria] = typer.Option(None, "--status"),
    exportar: Optional[str] = typer.Option(None, "--exportar", help="Grava XLSX/CSV"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Lista ocorrências (mais recentes primeiro)."""
    with _erros():
        res = relatorio_auditorias(tipo, status, db_path=_db(db_path), tenant_id=tenant)
        if exportar:
            n = exportar_relatorio(res[0], res[1], exportar)
            typer.echo(f">> {n} linha(s) exportada(s) para {exportar}")
    _display_table(res, title="Ocorrências")


@auditoria_app.command("resolver")
def cmd_auditoria_resolver(
    audit_id: int = typer.Argument(...),
    notas: str = typer.Option(..., "--notas"),
    desfecho: Optional[Desfecho] = typer.Option(None, "--desfecho", help="retorno | descarte"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Encerra uma ocorrência."""
    with _erros():
        a = auditorias.resolve_audit(audit_id, notas, desfecho, db_path=_db(db_path), tenant_id=tenant)
    _display_table(a, title="Ocorrência Resolvida")


@auditoria_app.command("status")
def cmd_auditoria_status(
    audit_id: int = typer.Argument(...),
    novo_status: StatusAuditoria = typer.Argument(...),
    notas: Optional[str] = typer.Option(None, "--notas"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Altera o status de uma ocorrência."""
    with _erros():
        a = auditorias.update_audit_status(audit_id, novo_status, notas, db_path=_db(db_path), tenant_id=tenant)
    _display_table(a, title="Status Atualizado")


@auditoria_app.command("garantia-lote")
def cmd_auditoria_garantia_lote(
    produto_id: int = typer.Argument(...),
    descricao: str = typer.Option(..., "--descricao"),
    serial_ids: Optional[List[int]] = typer.Option(None, "--serial", help="Repetir para cada unidade"),
    quantidade: Optional[int] = typer.Option(None, "--qtd", help="Produtos a granel"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Envia itens para garantia (um registro por unidade)."""
    with _erros():
        res = auditorias.submit_bulk_warranty(
            produto_id, descricao, serial_ids, quantidade, db_path=_db(db_path), tenant_id=tenant
        )
        _display_lote(res, title="Envio para Garantia")
        res.levantar_se_parcial()


@auditoria_app.command("receber-garantia")
def cmd_auditoria_receber_garantia(
    audit_ids: List[int] = typer.Argument(..., help="IDs das garantias enviadas"),
    notas: Optional[str] = typer.Option(None, "--notas"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Registra o retorno de garantias."""
    with _erros():
        res = auditorias.receive_bulk_warranty(audit_ids, notas, db_path=_db(db_path), tenant_id=tenant)
        _display_lote(res, title="Retorno de Garantia")
        res.levantar_se_parcial()


@auditoria_app.command("garantias")
def cmd_auditoria_garantias(db_path: str = DB_OPT, tenant: str = TENANT_OPT):
    """Garantias aguardando retorno."""
    with _erros():
        res = relatorio_garantias_pendentes(db_path=_db(db_path), tenant_id=tenant)
    _display_table(res, title="Garantias Pendentes")


@auditoria_app.command("resumo")
def cmd_auditoria_resumo(db_path: str = DB_OPT, tenant: str = TENANT_OPT):
    """Contagem de ocorrências por status."""
    with _erros():
        resumo = auditorias.resumo_auditorias(db_path=_db(db_path), tenant_id=tenant)
    _display_table([{"status": k, "contagem": v} for k, v in resumo.items()], title="Ocorrências por Status")


# -----------------------
# inventário
# -----------------------

inventario_app = typer.Typer(help="Contagem física e saúde do estoque")
app.add_typer(inventario_app, name="inventario")


@inventario_app.command("contar")
def cmd_inventario_contar(
    produto_id: int = typer.Argument(...),
    quantidade_real: int = typer.Argument(..., help="Quantidade contada"),
    notas: Optional[str] = typer.Option(None, "--notas"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Registra a contagem e alinha o saldo do produto."""
    with _erros():
        res = reconciliacao.count_and_reconcile(produto_id, quantidade_real, notas,
                                                db_path=_db(db_path), tenant_id=tenant)
    console.print(Panel(
        f"{res.auditoria.description}\n"
        f"Estoque {'atualizado' if res.estoque_atualizado else 'sem alteração'}",
        title=f"Inventário #{res.auditoria.id}",
        border_style="green" if not res.estoque_atualizado else "yellow",
    ))


@inventario_app.command("saude")
def cmd_inventario_saude(
    exportar: Optional[str] = typer.Option(None, "--exportar", help="Grava XLSX/CSV"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Resumo por categoria e lista de produtos zerados/baixos."""
    with _erros():
        db = _db(db_path)
        resumo = reconciliacao.resumo_saude_por_categoria(db_path=db, tenant_id=tenant)
        detalhe = relatorio_saude_estoque(db_path=db, tenant_id=tenant)
        if exportar:
            exportar_relatorio(detalhe[0], detalhe[1], exportar)

    table = Table(title="Saúde do Estoque", box=box.ROUNDED)
    for col in ("Categoria", "Zerados", "Baixos", "Indicador"):
        table.add_column(col)
    for cat, saude in resumo.items():
        badge = reconciliacao.badge_estoque(saude)
        if badge.severidade == "zero":
            indicador = f"[bold red]{badge.contagem}[/]"
        elif badge.severidade == "baixo":
            indicador = f"[bold yellow]{badge.contagem}[/]"
        else:
            indicador = "[green]ok[/]"
        table.add_row(ROTULOS_CATEGORIA[cat], str(saude.zerados), str(saude.baixos), indicador)
    console.print(table)
    _display_table(detalhe, title="Produtos Zerados / Abaixo do Mínimo")


@inventario_app.command("alertas")
def cmd_inventario_alertas(db_path: str = DB_OPT, tenant: str = TENANT_OPT):
    """Alertas de estoque do painel."""
    with _erros():
        alertas = reconciliacao.alertas_estoque(db_path=_db(db_path), tenant_id=tenant)
    if not alertas:
        console.print(Panel("Nenhum alerta de estoque", border_style="green"))
        return
    for a in alertas:
        console.print(f"[{'bold red' if a['tipo'] == 'danger' else 'bold yellow'}]{a['mensagem']}[/]")


# -----------------------
# cautelas
# -----------------------

cautela_app = typer.Typer(help="Cautelas (custódia de itens por técnico)")
app.add_typer(cautela_app, name="cautela")


@cautela_app.command("emitir")
def cmd_cautela_emitir(
    tecnico_id: str = typer.Argument(...),
    serial_id: Optional[int] = typer.Option(None, "--serial", help="Unidade serializada"),
    produto_id: Optional[int] = typer.Option(None, "--produto", help="Produto a granel"),
    quantidade: int = typer.Option(1, "--qtd"),
    assinatura: str = typer.Option("", "--assinatura", help="Assinatura capturada"),
    notas: Optional[str] = typer.Option(None, "--notas"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Emite uma cautela (informe --serial ou --produto)."""
    if (serial_id is None) == (produto_id is None):
        console.print(Panel("Informe exatamente um entre --serial e --produto", border_style="red"))
        raise typer.Exit(code=1)
    ativo = AtivoSerial(serial_id) if serial_id is not None else AtivoProduto(produto_id)
    with _erros():
        c = cautelas.issue(tecnico_id, ativo, quantidade, assinatura, notas,
                           db_path=_db(db_path), tenant_id=tenant)
    _display_table(c, title="Cautela Emitida")


@cautela_app.command("devolver")
def cmd_cautela_devolver(
    cautela_id: int = typer.Argument(...),
    motivo: str = typer.Option(..., "--motivo"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Registra a devolução de uma cautela."""
    with _erros():
        c = cautelas.return_asset(cautela_id, motivo, db_path=_db(db_path), tenant_id=tenant)
    _display_table(c, title="Cautela Devolvida")


@cautela_app.command("ativas")
def cmd_cautela_ativas(
    tecnico_id: Optional[str] = typer.Argument(None),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Itens sob responsabilidade (de um técnico ou de todos)."""
    with _erros():
        db = _db(db_path)
        res = relatorio_cautelas_ativas(tecnico_id, db_path=db, tenant_id=tenant)
        _display_table(res, title="Cautelas Ativas")
        if tecnico_id:
            total = cautelas.itens_sob_responsabilidade(tecnico_id, db_path=db, tenant_id=tenant)
            console.print(f"[dim]{total} item(ns) sob responsabilidade de {tecnico_id}[/dim]")


@cautela_app.command("ficha")
def cmd_cautela_ficha(
    tecnico_id: str = typer.Argument(...),
    exportar: Optional[str] = typer.Option(None, "--exportar", help="Grava XLSX/CSV"),
    apenas_ativas: bool = typer.Option(False, "--ativas", help="Somente itens não devolvidos"),
    db_path: str = DB_OPT,
    tenant: str = TENANT_OPT,
):
    """Ficha de cautela do técnico, por categoria."""
    with _erros():
        ficha = cautelas.ficha_cautela(tecnico_id, apenas_ativas, db_path=_db(db_path), tenant_id=tenant)
        if exportar:
            n = exportar_ficha_cautela(ficha, exportar, tecnico_id)
            typer.echo(f">> {n} linha(s) exportada(s) para {exportar}")
    if not ficha:
        console.print(Panel(f"Nenhuma cautela para {tecnico_id}", border_style="yellow"))
    for categoria, linhas in ficha.items():
        try:
            titulo = ROTULOS_CATEGORIA[Categoria(categoria)]
        except ValueError:
            titulo = categoria
        _display_table(linhas, title=f"Ficha de Cautela — {titulo}")


# Entry point opcional:
def main():
    app()


if __name__ == "__main__":
    main()
