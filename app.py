# app.py
"""
Entrypoint da aplicação.

Uso:
  python app.py migrate --db almoxarifado.db
  python app.py produto add --code FUR-01 --name "Furadeira" --category ferramentas --serializado
  python app.py serial entrada 1 SN-001 SN-002
  python app.py cautela emitir joao --serial 1 --assinatura "<assinatura>"
  python app.py inventario contar 2 7 --notas "Contagem mensal"
"""

from almoxarifado.adapters.cli import main

if __name__ == "__main__":
    main()
