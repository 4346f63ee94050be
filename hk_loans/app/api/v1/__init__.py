from . import (
    admin_router,
    auth_router,
    clients_router,
    dashboard_router,
    documents_router,
    installments_router,
    loans_router,
    partners_router,
    transactions_router,
)

__all__ = [
    "admin_router",
    "auth_router",
    "clients_router",
    "dashboard_router",
    "documents_router",
    "installments_router",
    "loans_router",
    "partners_router",
    "transactions_router",
]
