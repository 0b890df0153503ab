# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio.
# Las claves de to_dict()/from_dict() están en camelCase porque es el formato
# que comparten el store, los respaldos y los documentos de Firestore (los
# clientes web leen y escriben exactamente esas claves).
# ==============================================================================

import math
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from bigasan_pos.exceptions import ExceedsBalance, InvalidAmount, ValidationError
from bigasan_pos.time_utils import ensure_aware, parse_iso, to_iso


# ==============================================================================
# ENUMERACIONES Y CONSTANTES
# ==============================================================================

class ProductType(str, Enum):
    """Formas de venta de un producto."""
    KILO = 'kilo'            # Por peso
    SACK = 'sack'            # Saco cerrado
    PREPACKED = 'prepacked'  # Empacado


class PaymentMethod(str, Enum):
    """Métodos de pago aceptados."""
    CASH = 'cash'
    GCASH = 'gcash'    # Billetera digital
    CREDIT = 'credit'  # Fiado a 14 días


class CreditStatus(str, Enum):
    """Estados de un crédito."""
    ACTIVE = 'active'
    OVERDUE = 'overdue'
    PAID = 'paid'  # Terminal


CREDIT_TERM_DAYS = 14

# Tolerancia para redondeos de punto flotante al validar pagos
BALANCE_EPSILON = 0.01

WALK_IN_CUSTOMER = 'Walk-in Customer'

DEFAULT_SETTINGS: Dict[str, str] = {
    'storeName': 'Bigasan ni Joshua',
    'address': '',
    'phone': '',
    'receiptNote': 'Thank you for your purchase!',
}


def _money(value: Any, default: float = 0.0) -> float:
    """Convierte a float redondeado a centavos (valores inválidos -> default)."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return round(number, 2)


def _quantity(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ''


def _with_identity(data: Dict[str, Any], record_id: Optional[str], created_at: Optional[str]) -> Dict[str, Any]:
    """Agrega id/createdAt solo si ya existen (el store los asigna al crear)."""
    if record_id:
        data['id'] = record_id
    if created_at:
        data['createdAt'] = created_at
    return data


# ==============================================================================
# INVENTARIO
# ==============================================================================

@dataclass
class Product:
    """
    Producto del inventario.

    Attributes:
        name: Nombre visible
        type: Forma de venta (kilo, saco, empacado)
        price: Precio por unidad
        unit: Etiqueta de la unidad ('kg', 'sack', ...)
        stock: Existencias (nunca negativas)
        low_stock: Umbral de alerta de stock bajo
    """
    name: str
    type: str = ProductType.KILO.value
    price: float = 0.0
    unit: str = 'kg'
    stock: float = 0.0
    low_stock: float = 10.0
    description: str = ''
    id: Optional[str] = None
    created_at: Optional[str] = None

    def validate(self) -> None:
        if not self.name:
            raise ValidationError('El nombre del producto es obligatorio')
        if self.price < 0:
            raise ValidationError('Ingrese un precio válido')
        if not self.unit:
            raise ValidationError('La unidad es obligatoria')

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'name': self.name,
            'type': self.type,
            'price': self.price,
            'unit': self.unit,
            'stock': self.stock,
            'lowStock': self.low_stock,
            'description': self.description,
        }
        return _with_identity(data, self.id, self.created_at)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Product':
        return cls(
            name=_text(data.get('name')),
            type=_text(data.get('type')) or ProductType.KILO.value,
            price=_money(data.get('price')),
            unit=_text(data.get('unit')),
            stock=max(0.0, _quantity(data.get('stock'))),
            low_stock=_quantity(data.get('lowStock'), 10.0),
            description=_text(data.get('description')),
            id=data.get('id') or None,
            created_at=data.get('createdAt') or None,
        )


def clamp_stock(value: Any) -> float:
    """El stock nunca baja de cero."""
    return max(0.0, _quantity(value))


# ==============================================================================
# VENTAS
# ==============================================================================

@dataclass
class LineItem:
    """Línea de venta con la foto del producto al momento de vender."""
    product_id: str
    name: str
    type: str
    price: float
    unit: str
    qty: float

    @property
    def subtotal(self) -> float:
        return round(self.qty * self.price, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'productId': self.product_id,
            'name': self.name,
            'type': self.type,
            'price': self.price,
            'unit': self.unit,
            'qty': self.qty,
            'subtotal': self.subtotal,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'LineItem':
        return cls(
            product_id=data.get('productId'),
            name=_text(data.get('name')),
            type=_text(data.get('type')),
            price=_money(data.get('price')),
            unit=_text(data.get('unit')),
            qty=_quantity(data.get('qty')),
        )

    @classmethod
    def from_product(cls, product: Mapping[str, Any], qty: float) -> 'LineItem':
        return cls(
            product_id=product['id'],
            name=_text(product.get('name')),
            type=_text(product.get('type')),
            price=_money(product.get('price')),
            unit=_text(product.get('unit')),
            qty=_quantity(qty),
        )


@dataclass
class Transaction:
    """
    Venta registrada. Inmutable una vez creada.
    total = max(0, subtotal - descuento)
    """
    items: List[LineItem] = field(default_factory=list)
    discount: float = 0.0
    payment_method: str = PaymentMethod.CASH.value
    tendered: float = 0.0
    change: float = 0.0
    customer_id: Optional[str] = None
    customer_name: str = WALK_IN_CUSTOMER
    receipt_no: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def subtotal(self) -> float:
        return round(sum(item.subtotal for item in self.items), 2)

    @property
    def total(self) -> float:
        return round(max(0.0, self.subtotal - self.discount), 2)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'items': [item.to_dict() for item in self.items],
            'subtotal': self.subtotal,
            'discount': self.discount,
            'total': self.total,
            'paymentMethod': self.payment_method,
            'tendered': self.tendered,
            'change': self.change,
            'customerId': self.customer_id,
            'customerName': self.customer_name,
        }
        if self.receipt_no:
            data['receiptNo'] = self.receipt_no
        return _with_identity(data, self.id, self.created_at)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Transaction':
        return cls(
            items=[LineItem.from_dict(i) for i in (data.get('items') or [])],
            discount=max(0.0, _money(data.get('discount'))),
            payment_method=_text(data.get('paymentMethod')) or PaymentMethod.CASH.value,
            tendered=_money(data.get('tendered')),
            change=_money(data.get('change')),
            customer_id=data.get('customerId') or None,
            customer_name=_text(data.get('customerName')) or WALK_IN_CUSTOMER,
            receipt_no=data.get('receiptNo') or None,
            id=data.get('id') or None,
            created_at=data.get('createdAt') or None,
        )


# ==============================================================================
# CLIENTES, PROVEEDORES Y REABASTECIMIENTOS
# ==============================================================================

@dataclass
class Customer:
    name: str
    phone: str = ''
    address: str = ''
    notes: str = ''
    id: Optional[str] = None
    created_at: Optional[str] = None

    def validate(self) -> None:
        if not self.name:
            raise ValidationError('El nombre del cliente es obligatorio')

    def to_dict(self) -> Dict[str, Any]:
        data = {'name': self.name, 'phone': self.phone, 'address': self.address, 'notes': self.notes}
        return _with_identity(data, self.id, self.created_at)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Customer':
        return cls(
            name=_text(data.get('name')),
            phone=_text(data.get('phone')),
            address=_text(data.get('address')),
            notes=_text(data.get('notes')),
            id=data.get('id') or None,
            created_at=data.get('createdAt') or None,
        )


@dataclass
class Supplier:
    name: str
    contact: str = ''
    address: str = ''
    notes: str = ''
    id: Optional[str] = None
    created_at: Optional[str] = None

    def validate(self) -> None:
        if not self.name:
            raise ValidationError('El nombre del proveedor es obligatorio')

    def to_dict(self) -> Dict[str, Any]:
        data = {'name': self.name, 'contact': self.contact, 'address': self.address, 'notes': self.notes}
        return _with_identity(data, self.id, self.created_at)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Supplier':
        return cls(
            name=_text(data.get('name')),
            contact=_text(data.get('contact')),
            address=_text(data.get('address')),
            notes=_text(data.get('notes')),
            id=data.get('id') or None,
            created_at=data.get('createdAt') or None,
        )


@dataclass
class Restock:
    """Ingreso de mercadería. Al registrarse suma qty al stock del producto."""
    product_id: str
    qty: float
    cost: float = 0.0
    supplier_id: Optional[str] = None
    date: str = ''
    notes: str = ''
    id: Optional[str] = None
    created_at: Optional[str] = None

    def validate(self) -> None:
        if not self.product_id:
            raise ValidationError('Seleccione un producto')
        if self.qty <= 0:
            raise ValidationError('La cantidad debe ser mayor a 0')

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'productId': self.product_id,
            'qty': self.qty,
            'cost': self.cost,
            'supplierId': self.supplier_id,
            'date': self.date,
            'notes': self.notes,
        }
        return _with_identity(data, self.id, self.created_at)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Restock':
        return cls(
            product_id=data.get('productId') or '',
            qty=_quantity(data.get('qty')),
            cost=_money(data.get('cost')),
            supplier_id=data.get('supplierId') or None,
            date=_text(data.get('date')),
            notes=_text(data.get('notes')),
            id=data.get('id') or None,
            created_at=data.get('createdAt') or None,
        )


# ==============================================================================
# CRÉDITOS (FIADOS)
# ==============================================================================

@dataclass
class CreditPayment:
    """Abono a un crédito."""
    id: str
    amount: float
    note: str = ''
    date: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'amount': self.amount, 'note': self.note, 'date': self.date}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CreditPayment':
        return cls(
            id=data.get('id') or '',
            amount=_money(data.get('amount')),
            note=_text(data.get('note')),
            date=data.get('date') or '',
        )


@dataclass
class CreditRecord:
    """
    Crédito ligado a una venta fiada.

    Invariantes:
        balance + amount_paid == total_amount
        status == paid    <=> balance <= 0
        status == overdue <=> balance > 0 y ahora > due_date
    """
    transaction_id: Optional[str]
    receipt_no: str
    customer_id: Optional[str]
    customer_name: str
    total_amount: float
    due_date: str
    status: str = CreditStatus.ACTIVE.value
    payments: List[CreditPayment] = field(default_factory=list)
    id: Optional[str] = None
    created_at: Optional[str] = None

    # ------------------------------------------------------------------
    # Campos derivados
    # ------------------------------------------------------------------

    @property
    def amount_paid(self) -> float:
        return round(max(0.0, sum(p.amount for p in self.payments)), 2)

    @property
    def balance(self) -> float:
        return round(max(0.0, self.total_amount - self.amount_paid), 2)

    @property
    def due_at(self) -> Optional[datetime]:
        return parse_iso(self.due_date)

    def is_past_due(self, now: datetime) -> bool:
        due = self.due_at
        return due is not None and ensure_aware(now) > due

    def status_at(self, now: datetime) -> str:
        """Estado según saldo y fecha de vencimiento."""
        if self.balance <= 0:
            return CreditStatus.PAID.value
        if self.is_past_due(now):
            return CreditStatus.OVERDUE.value
        return CreditStatus.ACTIVE.value

    # ------------------------------------------------------------------
    # Transiciones
    # ------------------------------------------------------------------

    def with_payment(
        self,
        amount: Any,
        note: str,
        now: datetime,
        payment_id: str
    ) -> 'CreditRecord':
        """
        Retorna una copia con el abono aplicado y los derivados recalculados.

        Raises:
            InvalidAmount: monto <= 0 o no numérico
            ExceedsBalance: monto > saldo + 0.01, o crédito ya pagado
        """
        if isinstance(amount, bool):
            raise InvalidAmount('Monto inválido')
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise InvalidAmount('Monto inválido')
        if math.isnan(amount) or amount <= 0:
            raise InvalidAmount('El monto debe ser mayor a 0')

        balance = self.balance
        if self.status == CreditStatus.PAID.value or balance <= 0:
            raise ExceedsBalance(amount, 0.0)
        if amount > balance + BALANCE_EPSILON:
            raise ExceedsBalance(amount, balance)

        # Dentro de la tolerancia se registra exactamente el saldo
        applied = round(min(amount, balance), 2)
        payment = CreditPayment(id=payment_id, amount=applied, note=_text(note), date=to_iso(now))
        updated = replace(self, payments=[*self.payments, payment])
        updated.status = updated.status_at(now)
        return updated

    def overdue_at(self, now: datetime) -> bool:
        """True si un crédito activo ya venció (solo active -> overdue)."""
        return self.status == CreditStatus.ACTIVE.value and self.balance > 0 and self.is_past_due(now)

    # ------------------------------------------------------------------
    # Serialización
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'transactionId': self.transaction_id,
            'receiptNo': self.receipt_no,
            'customerId': self.customer_id,
            'customerName': self.customer_name,
            'totalAmount': self.total_amount,
            'amountPaid': self.amount_paid,
            'balance': self.balance,
            'dueDate': self.due_date,
            'status': self.status,
            'payments': [p.to_dict() for p in self.payments],
        }
        return _with_identity(data, self.id, self.created_at)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CreditRecord':
        status = _text(data.get('status')) or CreditStatus.ACTIVE.value
        if status not in {s.value for s in CreditStatus}:
            status = CreditStatus.ACTIVE.value
        return cls(
            transaction_id=data.get('transactionId') or None,
            receipt_no=_text(data.get('receiptNo')),
            customer_id=data.get('customerId') or None,
            customer_name=_text(data.get('customerName')),
            total_amount=max(0.0, _money(data.get('totalAmount'))),
            due_date=data.get('dueDate') or '',
            status=status,
            payments=[CreditPayment.from_dict(p) for p in (data.get('payments') or [])],
            id=data.get('id') or None,
            created_at=data.get('createdAt') or None,
        )

    @classmethod
    def for_transaction(cls, transaction: Mapping[str, Any], now: datetime) -> 'CreditRecord':
        """Crédito nuevo para una venta fiada, con vencimiento a 14 días."""
        return cls(
            transaction_id=transaction.get('id'),
            receipt_no=_text(transaction.get('receiptNo')),
            customer_id=transaction.get('customerId'),
            customer_name=_text(transaction.get('customerName')) or 'Unknown',
            total_amount=_money(transaction.get('total')),
            due_date=to_iso(ensure_aware(now) + timedelta(days=CREDIT_TERM_DAYS)),
        )


# ==============================================================================
# CONFIGURACIÓN Y CREDENCIALES
# ==============================================================================

@dataclass
class Settings:
    """Datos de la tienda (registro único)."""
    storeName: str = DEFAULT_SETTINGS['storeName']
    address: str = DEFAULT_SETTINGS['address']
    phone: str = DEFAULT_SETTINGS['phone']
    receiptNote: str = DEFAULT_SETTINGS['receiptNote']

    @classmethod
    def merged(cls, base: Optional[Mapping[str, Any]] = None, partial: Optional[Mapping[str, Any]] = None) -> 'Settings':
        """
        Combina campo por campo: valores por defecto, luego `base`, luego `partial`.
        Solo se sobrescriben los campos presentes; claves desconocidas se ignoran.
        """
        values = dict(DEFAULT_SETTINGS)
        for source in (base or {}, partial or {}):
            for f in fields(cls):
                if f.name in source and source[f.name] is not None:
                    values[f.name] = _text(source[f.name])
        return cls(**values)

    def to_dict(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class OwnerCredentials:
    """
    Credenciales del dueño. Solo locales: NUNCA se sincronizan.
    La contraseña se guarda como hash (werkzeug).
    """
    username: str
    password_hash: str

    def to_dict(self) -> Dict[str, str]:
        return {'username': self.username, 'password_hash': self.password_hash}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'OwnerCredentials':
        return cls(
            username=_text(data.get('username')),
            password_hash=data.get('password_hash') or '',
        )
