"""Bigasan POS - núcleo de datos del punto de venta (store, créditos y sincronización)."""

__version__ = '1.0.0'
