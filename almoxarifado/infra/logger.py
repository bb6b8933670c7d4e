"""
Sistema de logging para as operações do almoxarifado.

Este módulo configura e fornece loggers para registrar as operações
críticas do sistema: números de série, ocorrências (auditorias),
cautelas e operações no banco de dados.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional


# Flag global para habilitar/desabilitar logging
ENABLE_LOGGING = os.environ.get("ALMOXARIFADO_LOG", "0") == "1"
# Flag global para habilitar/desabilitar prints/output
ENABLE_OUTPUT = False

# Configuração base dos loggers
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str, log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configura um logger específico com arquivo de saída.

    Args:
        name: Nome do logger
        log_file: Caminho do arquivo de log
        level: Nível de logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Logger configurado
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    # Remove handlers anteriores (reimportação em testes)
    while logger.handlers:
        logger.removeHandler(logger.handlers[0])

    # delay=True: o arquivo só é criado na primeira escrita
    file_handler = logging.FileHandler(log_file, encoding='utf-8', delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger

# Diretório base para logs (na pasta do módulo, ou ALMOXARIFADO_LOGS_DIR)
BASE_DIR = Path(__file__).parent.parent
LOGS_DIR = Path(os.environ.get("ALMOXARIFADO_LOGS_DIR", str(BASE_DIR / "logs")))

# Loggers específicos para cada família de operação
transaction_logger = setup_logger('almoxarifado.transactions', str(LOGS_DIR / 'transactions.log'))
serial_logger = setup_logger('almoxarifado.seriais', str(LOGS_DIR / 'seriais.log'))
auditoria_logger = setup_logger('almoxarifado.auditorias', str(LOGS_DIR / 'auditorias.log'))
cautela_logger = setup_logger('almoxarifado.cautelas', str(LOGS_DIR / 'cautelas.log'))
database_logger = setup_logger('almoxarifado.database', str(LOGS_DIR / 'database.log'))
system_logger = setup_logger('almoxarifado.system', str(LOGS_DIR / 'system.log'))

def log_transaction(operation: str, data: Dict[str, Any], result: Optional[Any] = None, error: Optional[str] = None) -> None:
    """
    Registra uma transação completa no log.

    Args:
        operation: Tipo de operação (abrir_auditoria, emitir_cautela, etc.)
        data: Dados da transação
        result: Resultado da operação (opcional)
        error: Mensagem de erro (opcional)
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    if error:
        transaction_logger.error(f"TRANSACTION_FAILED: {operation} - {error} - Data: {data}")
    else:
        transaction_logger.info(f"TRANSACTION_SUCCESS: {operation} - Result: {result} - Data: {data}")

def log_serial(action: str, serial: Optional[str], status: Optional[str] = None, **kwargs) -> None:
    """Log específico para o ciclo de vida de números de série."""
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {"action": action, "serial": serial, "status": status, **kwargs}
    serial_logger.info(f"SERIAL_{action.upper()}: {log_data}")

def log_auditoria(action: str, audit_type: Optional[str], product_id: Any, quantidade: Any = None, **kwargs) -> None:
    """Log específico para ocorrências (defeito, furto, garantia, inventário, resolução)."""
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {
        "action": action,
        "audit_type": audit_type,
        "product_id": product_id,
        "quantidade": quantidade,
        **kwargs
    }
    auditoria_logger.info(f"AUDITORIA_{action.upper()}: {log_data}")

def log_cautela(action: str, technician_id: Optional[str], **kwargs) -> None:
    """Log específico para emissão e devolução de cautelas."""
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {"action": action, "technician_id": technician_id, **kwargs}
    cautela_logger.info(f"CAUTELA_{action.upper()}: {log_data}")

def log_database_operation(table: str, operation: str, affected_rows: int = 0, **kwargs) -> None:
    """
    Log específico para operações no banco de dados.

    Args:
        table: Nome da tabela
        operation: Operação SQL (INSERT, UPDATE, SELECT)
        affected_rows: Número de linhas afetadas
        **kwargs: Dados adicionais
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {
        "table": table,
        "operation": operation,
        "affected_rows": affected_rows,
        **kwargs
    }
    database_logger.info(f"DB_{operation}: {log_data}")

def log_system_event(event: str, details: Dict[str, Any] = None, level: str = "info") -> None:
    """
    Log para eventos do sistema.

    Args:
        event: Descrição do evento
        details: Detalhes adicionais (opcional)
        level: Nível do log (info, warning, error)
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {
        "event": event,
        "details": details or {}
    }
    log_method = getattr(system_logger, level.lower(), system_logger.info)
    log_method(f"SYSTEM_EVENT: {event} - {log_data}")

def log_file_operation(operation: str, file_path: str, rows_processed: int = 0, **kwargs) -> None:
    """Log para operações de arquivo (importação/exportação de planilhas)."""
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {
        "operation": operation,
        "file_path": file_path,
        "rows_processed": rows_processed,
        "at": datetime.now().isoformat(timespec="seconds"),
        **kwargs
    }
    system_logger.info(f"FILE_{operation.upper()}: {log_data}")

def get_log_summary(log_type: str = "transactions", lines: int = 100) -> Optional[str]:
    """
    Obtém um resumo dos logs recentes.

    Args:
        log_type: Tipo de log (transactions, seriais, auditorias, cautelas, database, system)
        lines: Número de linhas a retornar

    Returns:
        Conteúdo do log como string
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return None

    log_files = {
        "transactions": LOGS_DIR / "transactions.log",
        "seriais": LOGS_DIR / "seriais.log",
        "auditorias": LOGS_DIR / "auditorias.log",
        "cautelas": LOGS_DIR / "cautelas.log",
        "database": LOGS_DIR / "database.log",
        "system": LOGS_DIR / "system.log"
    }

    log_file = log_files.get(log_type)
    if not log_file or not log_file.exists():
        return f"Log {log_type} não encontrado."

    try:
        with open(log_file, 'r', encoding='utf-8') as f:
            all_lines = f.readlines()
            recent_lines = all_lines[-lines:] if len(all_lines) > lines else all_lines
            return ''.join(recent_lines)
    except OSError as e:
        return f"Erro ao ler log {log_type}: {str(e)}"
