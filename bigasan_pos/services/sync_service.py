# ==============================================================================
# SERVICIO DE SINCRONIZACIÓN CON FIRESTORE
# ==============================================================================
# Refleja los slices sincronizables del store en Firestore:
#   colección FIREBASE_COLLECTION ('pos') -> un documento por slice
#   documento bigasan_<slice> = {data: "<JSON>", updatedAt: SERVER_TIMESTAMP}
#
# REGLAS:
# - Última escritura gana a nivel de colección completa (sin merge por campo).
# - Las escrituras van a una cola con un hilo escritor (no bloquean la acción
#   local, que ya quedó aplicada). La cola guarda solo el NOMBRE del slice:
#   el valor se lee del store al momento de escribir, así siempre se sube el
#   estado más reciente aunque dos requests empujen en otro orden.
# - Mientras un slice tiene escrituras encoladas o en curso, los snapshots
#   remotos de ese slice se retienen y se revisan al terminar.
# - El eco de una escritura propia se reconoce por su payload y se descarta
#   (el SDK admin no marca las escrituras locales pendientes como el web).
# - Un snapshot ajeno solo se aplica si difiere (JSON canónico) del valor local.
# - Fallos de lectura/escritura se registran por colección y no detienen
#   al resto. Sin conexión la app sigue funcionando solo con datos locales.
# ==============================================================================

import json
import logging
import queue
import threading
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Tuple

import firebase_admin
from firebase_admin import credentials, firestore

from bigasan_pos.exceptions import SyncConnectionError, SyncReadFailure, SyncWriteFailure
from bigasan_pos.models import Settings
from bigasan_pos.repositories.state_store import STORAGE_KEYS, SYNCABLE_SLICES, StateStore

logger = logging.getLogger(__name__)

# Payloads propios sin eco confirmado que se recuerdan por slice
OWN_WRITES_KEPT = 16

_MISSING = object()


class SyncStatus(str, Enum):
    """Estado de conexión con la nube (único indicador autorizado)."""
    OFFLINE = 'offline'
    SYNCING = 'syncing'
    ONLINE = 'online'


def serialize(value: Any) -> str:
    """JSON canónico (claves ordenadas, sin espacios)."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(',', ':'))


class CloudSyncService:
    """
    Adaptador de sincronización store <-> Firestore.

    Uso:
        sync = CloudSyncService(store)
        sync.connect({'credentials': '/ruta/service-account.json'})
        sync.pull_all()
        sync.listen_all(on_remote_change=lambda name: ...)
    """

    DEFAULT_APP_NAME = 'bigasan-pos'
    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        store: StateStore,
        collection: str = 'pos',
        background: bool = True
    ):
        """
        Args:
            store: Store reactivo a reflejar
            collection: Colección de Firestore que contiene los documentos
            background: Si False, las escrituras se hacen en línea (tests/scripts)
        """
        self.store = store
        self.collection = collection
        self.background = background
        self.timeout = self.DEFAULT_TIMEOUT

        self._client = None
        self._status = SyncStatus.OFFLINE
        self._status_lock = threading.Lock()

        # Listeners activos: {slice: watch}
        self._watches: Dict[str, Any] = {}
        self._generation = 0

        # Cola de escritura: {slice: payload fijo, o None = leer el store al escribir}
        self._pending: Dict[str, Optional[str]] = {}
        # Escrituras encoladas o en curso por slice
        self._writing: Dict[str, int] = {}
        # Payloads escritos cuyo eco no ha llegado (el más antiguo primero)
        self._own_writes: Dict[str, Deque[str]] = {}
        # Último snapshot remoto recibido mientras el slice se escribía
        self._held: Dict[str, Tuple[Any, Optional[Callable[[str], None]]]] = {}
        self._pending_lock = threading.Lock()
        self._idle = threading.Condition(self._pending_lock)
        self._write_lock = threading.Lock()
        self._write_queue: "queue.Queue[Optional[str]]" = queue.Queue()
        self._writer_thread: Optional[threading.Thread] = None

    # =========================================================================
    # ESTADO
    # =========================================================================

    @property
    def status(self) -> SyncStatus:
        return self._status

    def is_connected(self) -> bool:
        return self._status == SyncStatus.ONLINE and self._client is not None

    def _set_status(self, status: SyncStatus) -> None:
        with self._status_lock:
            if self._status != status:
                logger.info('[SYNC] Estado: %s -> %s', self._status.value, status.value)
            self._status = status

    # =========================================================================
    # CONEXIÓN
    # =========================================================================

    def connect(self, config: Optional[Mapping[str, Any]] = None, client: Any = None) -> None:
        """
        Conecta con Firestore y verifica el acceso leyendo un documento.

        Args:
            config: {'credentials': ruta, 'project_id': id, 'app_name': nombre,
                     'timeout': segundos}
            client: Cliente de Firestore ya creado (opcional)

        Raises:
            SyncConnectionError: Firestore no configurado o inaccesible
        """
        config = dict(config or {})
        self.timeout = float(config.get('timeout') or self.DEFAULT_TIMEOUT)
        self._set_status(SyncStatus.SYNCING)
        try:
            self._client = client if client is not None else self._create_client(config)
            # Sonda: falla aquí si no hay red o las credenciales no sirven
            self._document('settings').get(timeout=self.timeout)
        except Exception as e:
            self._client = None
            self._set_status(SyncStatus.OFFLINE)
            logger.error('[SYNC] No se pudo conectar con Firestore: %s', e)
            if isinstance(e, SyncConnectionError):
                raise
            raise SyncConnectionError(f'No se pudo conectar con Firestore: {e}') from e
        self._set_status(SyncStatus.ONLINE)

    def _create_client(self, config: Mapping[str, Any]) -> Any:
        cred_path = config.get('credentials')
        project_id = config.get('project_id')
        if not cred_path and not project_id:
            raise SyncConnectionError('Firebase no está configurado (sin credenciales ni proyecto)')

        app_name = config.get('app_name') or self.DEFAULT_APP_NAME
        try:
            app = firebase_admin.get_app(app_name)
        except ValueError:
            cred = credentials.Certificate(cred_path) if cred_path else credentials.ApplicationDefault()
            options = {'projectId': project_id} if project_id else None
            app = firebase_admin.initialize_app(cred, options, name=app_name)
        return firestore.client(app)

    def disconnect(self, timeout: float = 5.0) -> None:
        """Desconecta listeners y vacía la cola. Se puede llamar varias veces."""
        self.stop_listeners()
        self.flush(timeout)
        self._client = None
        with self._pending_lock:
            self._own_writes.clear()
        self._set_status(SyncStatus.OFFLINE)

    def _document(self, name: str) -> Any:
        return self._client.collection(self.collection).document(STORAGE_KEYS[name])

    # =========================================================================
    # DESCARGA
    # =========================================================================

    def pull_all(self) -> List[str]:
        """
        Descarga todas las colecciones y reemplaza los slices locales.
        Un fallo en una colección se registra y no detiene a las demás.

        Returns:
            Nombres de los slices actualizados desde la nube
        """
        if not self.is_connected():
            return []
        pulled = []
        for name in SYNCABLE_SLICES:
            try:
                snapshot = self._document(name).get(timeout=self.timeout)
                value = self._decode_snapshot(name, snapshot)
            except SyncReadFailure as e:
                logger.warning('[SYNC] %s', e)
                continue
            except Exception as e:
                logger.warning('[SYNC] %s', SyncReadFailure(name, e))
                continue
            if value is not None:
                self.store.set_slice(name, value)
                pulled.append(name)
        logger.info('[SYNC] Descargadas %d colecciones', len(pulled))
        return pulled

    def _decode_snapshot(self, name: str, snapshot: Any) -> Any:
        """Valor del documento, o None si no existe o no tiene datos."""
        if snapshot is None or not snapshot.exists:
            return None
        raw = (snapshot.to_dict() or {}).get('data')
        if raw is None:
            return None
        return self._decode(name, raw)

    def _decode(self, name: str, raw: Any) -> Any:
        try:
            value = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        except ValueError as e:
            raise SyncReadFailure(name, e) from e
        if name == 'settings':
            if not isinstance(value, dict):
                raise SyncReadFailure(name, TypeError('se esperaba un objeto'))
            return Settings.merged(value).to_dict()
        if not isinstance(value, list):
            raise SyncReadFailure(name, TypeError('se esperaba una lista'))
        return value

    # =========================================================================
    # SUBIDA
    # =========================================================================

    def push_one(self, name: str, value: Any = None) -> bool:
        """
        Sube una colección. Se ignora en silencio si el slice no es
        sincronizable o si no hay conexión.

        Args:
            name: Slice a subir
            value: Valor fijo a subir. Por defecto se sube el valor que tenga
                   el store al momento de escribir.

        Returns:
            True si la escritura se encoló o se realizó
        """
        if name not in SYNCABLE_SLICES or not self.is_connected():
            return False
        payload = serialize(value) if value is not None else None

        if not self.background:
            with self._pending_lock:
                self._writing[name] = self._writing.get(name, 0) + 1
            try:
                return self._write(name, payload)
            finally:
                self._finish_write(name)

        with self._pending_lock:
            queued = name in self._pending
            self._pending[name] = payload
            if not queued:
                self._writing[name] = self._writing.get(name, 0) + 1
                self._write_queue.put(name)
        self._start_writer()
        return True

    def push_all(self) -> int:
        """
        Sube todas las colecciones con su valor local actual
        (después de restaurar un respaldo o borrar todo).

        Returns:
            Cantidad de colecciones enviadas
        """
        return sum(1 for name in SYNCABLE_SLICES if self.push_one(name))

    def _write(self, name: str, payload: Optional[str]) -> bool:
        client = self._client
        if client is None:
            return False
        with self._write_lock:
            if payload is None:
                payload = self.store.read(name, serialize)
            try:
                client.collection(self.collection).document(STORAGE_KEYS[name]).set({
                    'data': payload,
                    'updatedAt': firestore.SERVER_TIMESTAMP,
                })
            except Exception as e:
                logger.warning('[SYNC] %s', SyncWriteFailure(name, e))
                return False
            with self._pending_lock:
                own = self._own_writes.setdefault(name, deque(maxlen=OWN_WRITES_KEPT))
                own.append(payload)
        return True

    def _finish_write(self, name: str) -> None:
        """Cierra una escritura; si fue la última del slice revisa el snapshot retenido."""
        with self._pending_lock:
            remaining = self._writing.get(name, 0) - 1
            if remaining > 0:
                self._writing[name] = remaining
                return
            self._writing.pop(name, None)
            held = self._held.pop(name, None)

        if held is not None:
            value, on_remote_change = held
            self.apply_remote(name, value, on_remote_change)

        with self._pending_lock:
            if not self._writing:
                self._idle.notify_all()

    def _start_writer(self) -> None:
        """Inicia el hilo escritor si no está corriendo."""
        if self._writer_thread is None or not self._writer_thread.is_alive():
            self._writer_thread = threading.Thread(
                target=self._writer_loop, name='firestore-writer', daemon=True
            )
            self._writer_thread.start()

    def _writer_loop(self) -> None:
        while True:
            name = self._write_queue.get()
            if name is None:
                break
            with self._pending_lock:
                payload = self._pending.pop(name, _MISSING)
            try:
                if payload is not _MISSING:
                    self._write(name, payload)
            finally:
                self._finish_write(name)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Espera a que se vacíe la cola de escritura.

        Returns:
            True si quedó vacía antes del timeout
        """
        with self._pending_lock:
            return self._idle.wait_for(lambda: not self._writing, timeout)

    # =========================================================================
    # TIEMPO REAL
    # =========================================================================

    def listen_all(self, on_remote_change: Callable[[str], None] = None) -> None:
        """
        Se suscribe a los documentos de todas las colecciones. Volver a
        llamarlo primero desconecta los listeners anteriores.

        Args:
            on_remote_change: Función(nombre_slice) llamada cuando un cambio
                              remoto reemplazó datos locales
        """
        if not self.is_connected():
            return
        self.stop_listeners()
        generation = self._generation
        for name in SYNCABLE_SLICES:
            handler = self._make_snapshot_handler(name, generation, on_remote_change)
            self._watches[name] = self._document(name).on_snapshot(handler)
        logger.info('[SYNC] Escuchando %d colecciones', len(self._watches))

    def stop_listeners(self) -> None:
        watches = list(self._watches.items())
        self._watches = {}
        # Los callbacks de la generación anterior quedan descartados
        self._generation += 1
        with self._pending_lock:
            self._held.clear()
        for name, watch in watches:
            try:
                watch.unsubscribe()
            except Exception as e:
                logger.warning('[SYNC] Error al cerrar listener de %s: %s', name, e)

    def _make_snapshot_handler(self, name: str, generation: int, on_remote_change):
        def handler(doc_snapshots, changes=None, read_time=None):
            if generation != self._generation:
                return
            if not doc_snapshots:
                return
            try:
                value = self._decode_snapshot(name, doc_snapshots[-1])
            except SyncReadFailure as e:
                logger.warning('[SYNC] %s', e)
                return
            if value is None:
                return
            self.apply_remote(name, value, on_remote_change)
        return handler

    def _take_own_echo(self, name: str, incoming: str) -> bool:
        """
        True si `incoming` es una escritura propia. El eco confirma esa
        escritura y todas las anteriores del slice. Requiere _pending_lock.
        """
        own = self._own_writes.get(name)
        if not own or incoming not in own:
            return False
        while own.popleft() != incoming:
            pass
        return True

    def apply_remote(
        self,
        name: str,
        value: Any,
        on_remote_change: Callable[[str], None] = None
    ) -> bool:
        """
        Recibe un valor remoto para un slice.

        - Con escrituras propias pendientes o en curso: se retiene y se
          revisa cuando terminan (un eco viejo no pisa el valor local nuevo).
        - Eco de una escritura propia: se descarta.
        - Valor ajeno: se aplica si difiere del local.

        Returns:
            True si se reemplazó el slice local
        """
        incoming = serialize(value)
        with self._pending_lock:
            if self._writing.get(name):
                self._held[name] = (value, on_remote_change)
                return False
            if self._take_own_echo(name, incoming):
                return False

        changed = self.store.set_slice_if_changed(
            name, value, lambda current, _: serialize(current) == incoming
        )
        if changed:
            with self._pending_lock:
                # Otro dispositivo escribió después: los ecos propios ya pasaron
                self._own_writes.pop(name, None)
            logger.info('[SYNC] Cambio remoto aplicado: %s', name)
            if on_remote_change is not None:
                on_remote_change(name)
        return changed
