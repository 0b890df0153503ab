# ==============================================================================
# EXCEPCIONES DEL DOMINIO
# ==============================================================================
# Errores de reglas de negocio (se reportan al llamador ANTES de tocar el
# store) y errores de sincronización (se registran y la app sigue offline).
# ==============================================================================


class PosError(Exception):
    """Error base de la aplicación."""
    pass


# ------------------------------------------------------------------------------
# Reglas de negocio
# ------------------------------------------------------------------------------

class InvalidAmount(PosError):
    """Monto de pago menor o igual a cero."""
    pass


class ExceedsBalance(PosError):
    """El pago supera el saldo pendiente del crédito."""

    def __init__(self, amount: float, balance: float):
        self.amount = amount
        self.balance = balance
        super().__init__(
            f'El pago ({amount:.2f}) excede el saldo pendiente ({balance:.2f})'
        )


class InvalidFormat(PosError):
    """Documento de respaldo sin versión o con estructura inválida."""
    pass


class ValidationError(PosError):
    """Datos obligatorios faltantes o inválidos."""
    pass


class CheckoutError(PosError):
    """La venta no puede registrarse (carrito vacío, efectivo insuficiente, etc.)."""
    pass


class RecordNotFound(PosError):
    """El registro solicitado no existe."""

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f'{collection}: registro {record_id} no encontrado')


class InvalidCredentials(PosError):
    """Usuario o contraseña incorrectos."""
    pass


# ------------------------------------------------------------------------------
# Sincronización con la nube (no fatales)
# ------------------------------------------------------------------------------

class SyncConnectionError(PosError):
    """No se pudo conectar con Firestore (sin red o mal configurado)."""
    pass


class SyncWriteFailure(PosError):
    """Falló la escritura de una colección en Firestore."""

    def __init__(self, collection: str, cause: Exception = None):
        self.collection = collection
        self.cause = cause
        super().__init__(f'No se pudo subir {collection}: {cause}')


class SyncReadFailure(PosError):
    """Falló la lectura de una colección desde Firestore."""

    def __init__(self, collection: str, cause: Exception = None):
        self.collection = collection
        self.cause = cause
        super().__init__(f'No se pudo descargar {collection}: {cause}')
