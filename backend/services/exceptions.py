"""
Erreurs métier typées du moteur de stock.

Toutes héritent de InventoryError et portent un `code` stable (utilisé par
l'API) plus des champs structurés. Ce sont des issues attendues : aucune
n'est accompagnée d'un changement d'état partiel.

Les erreurs de stockage (SQLAlchemyError, StaleDataError...) ne sont PAS
des InventoryError : elles annulent la transaction et remontent telles
quelles.
"""

from __future__ import annotations

from decimal import Decimal


class InventoryError(Exception):
    code: str = "INVENTORY_ERROR"
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidOperation(InventoryError):
    code = "INVALID_OPERATION"


class VolumeMismatchError(InvalidOperation):
    code = "VOLUME_MISMATCH"

    def __init__(self, sku: str, source_volume: Decimal, destination_volume: Decimal):
        self.sku = sku
        self.source_volume = source_volume
        self.destination_volume = destination_volume
        super().__init__(
            f"Volume per unit mismatch for SKU '{sku}': "
            f"source={source_volume}, destination={destination_volume}"
        )


class ResourceNotFound(InventoryError):
    code = "RESOURCE_NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, field: str, value, message: str | None = None):
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} not found with {field}: '{value}'")


class InsufficientStock(InventoryError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, sku: str, available: int, requested: int):
        self.sku = sku
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for SKU '{sku}'. Available: {available}, Requested: {requested}"
        )


class WarehouseCapacityExceeded(InventoryError):
    code = "WAREHOUSE_CAPACITY_EXCEEDED"

    def __init__(self, warehouse_name: str, available: Decimal, requested: Decimal):
        self.warehouse_name = warehouse_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Warehouse '{warehouse_name}' capacity exceeded. "
            f"Available capacity: {available:.2f}, Requested: {requested:.2f}"
        )


class CapacityInconsistencyError(InventoryError):
    code = "CAPACITY_INCONSISTENT"
    status_code = 409

    def __init__(self, warehouse_name: str, actual: Decimal, max_capacity: Decimal):
        self.warehouse_name = warehouse_name
        self.actual = actual
        self.max_capacity = max_capacity
        super().__init__(
            f"Warehouse '{warehouse_name}' holds {actual:.2f} of volume "
            f"but its max capacity is {max_capacity:.2f}; manual correction required"
        )


class LedgerImmutableError(InventoryError):
    code = "LEDGER_IMMUTABLE"
    status_code = 409

    def __init__(self, activity_id, operation: str):
        self.activity_id = activity_id
        self.operation = operation
        super().__init__(f"Stock activity {activity_id} is immutable ({operation} refused)")
