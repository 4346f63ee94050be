# hk_loans/app/schemas/__init__.py
"""
Paquete de schemas Pydantic de HK Loans.

Un módulo por recurso de la API (auth, clients, partners, loans,
transactions, dashboard, admin). Los routers importan directamente del
módulo correspondiente.
"""
