# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Entidades del dominio como dataclasses. El store guarda diccionarios en
# camelCase (formato compartido con Firestore y los respaldos); estas clases
# validan, calculan derivados y convierten desde/hacia ese formato.
# ==============================================================================

from .entities import (
    # Constantes
    BALANCE_EPSILON,
    CREDIT_TERM_DAYS,
    DEFAULT_SETTINGS,
    WALK_IN_CUSTOMER,

    # Enumeraciones
    ProductType,
    PaymentMethod,
    CreditStatus,

    # Inventario
    Product,
    Restock,
    clamp_stock,

    # Ventas
    LineItem,
    Transaction,

    # Personas
    Customer,
    Supplier,

    # Créditos
    CreditPayment,
    CreditRecord,

    # Configuración
    Settings,
    OwnerCredentials,
)

__all__ = [
    'BALANCE_EPSILON',
    'CREDIT_TERM_DAYS',
    'DEFAULT_SETTINGS',
    'WALK_IN_CUSTOMER',
    'ProductType',
    'PaymentMethod',
    'CreditStatus',
    'Product',
    'Restock',
    'clamp_stock',
    'LineItem',
    'Transaction',
    'Customer',
    'Supplier',
    'CreditPayment',
    'CreditRecord',
    'Settings',
    'OwnerCredentials',
]
