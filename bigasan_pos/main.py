# ==============================================================================
# APLICACIÓN FLASK - API JSON del punto de venta
# ==============================================================================
# Las rutas solo orquestan request → service → response.
# Toda la lógica vive en services/ (a través del contenedor).
#
# Respuestas:
#   éxito -> {"ok": true, ...}
#   error -> {"ok": false, "error": "..."}  (400, 401 o 404)
# ==============================================================================

import atexit
import logging
from functools import wraps

from flask import Flask, jsonify, request, session

from bigasan_pos.app_container import AppContainer, get_container
from bigasan_pos.config import configure_logging, load_config
from bigasan_pos.exceptions import InvalidCredentials, InvalidFormat, PosError, RecordNotFound

logger = logging.getLogger(__name__)


def _body():
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _ok(**payload):
    return jsonify({'ok': True, **payload})


def _error(message, status=400):
    return jsonify({'ok': False, 'error': message}), status


def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if 'user' not in session:
            return _error('Debes iniciar sesión.', 401)
        return f(*args, **kwargs)
    return wrapper


def create_app(container: AppContainer = None) -> Flask:
    """
    Crea la aplicación.

    Args:
        container: Contenedor ya configurado (tests). Por defecto se arma
                   desde las variables de entorno.
    """
    if container is None:
        config = load_config()
        configure_logging(config.log_level)
        container = get_container(config)
        atexit.register(container.shutdown)
    container.start()

    app = Flask(__name__)
    app.secret_key = container.config.secret_key
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SECURE=False,       # False para HTTP local
        SESSION_COOKIE_SAMESITE='Lax',
        PERMANENT_SESSION_LIFETIME=86400,  # 24 horas
    )
    app.extensions['bigasan_container'] = container

    data = container.data_service

    # ═══════════════════════════════════════════════════════════════════════
    # MANEJO DE ERRORES
    # ═══════════════════════════════════════════════════════════════════════

    @app.errorhandler(RecordNotFound)
    def handle_not_found(e):
        return _error(str(e), 404)

    @app.errorhandler(InvalidCredentials)
    def handle_invalid_credentials(e):
        return _error(str(e), 401)

    @app.errorhandler(PosError)
    def handle_pos_error(e):
        return _error(str(e), 400)

    # ═══════════════════════════════════════════════════════════════════════
    # SESIÓN
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/login', methods=['POST'])
    def api_login():
        body = _body()
        username = container.auth_service.authenticate(body.get('username'), body.get('password'))
        session.clear()
        session['user'] = username
        session.permanent = True
        return _ok(user=username)

    @app.route('/api/logout', methods=['POST'])
    @login_required
    def api_logout():
        session.clear()
        return _ok()

    @app.route('/api/session', methods=['GET'])
    def api_session():
        return _ok(loggedIn='user' in session, user=session.get('user'))

    @app.route('/api/owner', methods=['GET', 'POST'])
    @login_required
    def api_owner():
        if request.method == 'POST':
            body = _body()
            username = data.save_owner(body.get('username'), body.get('password') or '', body.get('confirm'))
            session['user'] = username
        return _ok(username=data.get_owner())

    # ═══════════════════════════════════════════════════════════════════════
    # PRODUCTOS
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/products', methods=['GET', 'POST'])
    @login_required
    def api_products():
        if request.method == 'POST':
            return _ok(product=data.save_product(_body()))
        return _ok(products=data.get_products())

    @app.route('/api/products/<product_id>', methods=['DELETE'])
    @login_required
    def api_delete_product(product_id):
        if data.delete_product(product_id) is None:
            raise RecordNotFound('products', product_id)
        return _ok()

    @app.route('/api/products/<product_id>/stock', methods=['POST'])
    @login_required
    def api_product_stock(product_id):
        try:
            delta = float(_body().get('delta'))
        except (TypeError, ValueError):
            return _error('Cantidad inválida')
        return _ok(product=data.update_stock(product_id, delta))

    # ═══════════════════════════════════════════════════════════════════════
    # VENTAS
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/transactions', methods=['GET'])
    @login_required
    def api_transactions():
        start = request.args.get('from')
        end = request.args.get('to')
        if start or end:
            try:
                txns = data.get_transactions_by_date_range(start or end, end or start)
            except ValueError as e:
                return _error(str(e))
        else:
            txns = data.get_transactions()
        return _ok(transactions=txns)

    @app.route('/api/checkout', methods=['POST'])
    @login_required
    def api_checkout():
        body = _body()
        result = container.sales_service.checkout(
            body.get('cart') or [],
            body.get('paymentMethod'),
            discount=body.get('discount') or 0,
            tendered=body.get('tendered'),
            customer_id=body.get('customerId') or None,
        )
        return _ok(**result)

    # ═══════════════════════════════════════════════════════════════════════
    # CLIENTES, PROVEEDORES Y REABASTECIMIENTOS
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/customers', methods=['GET', 'POST'])
    @login_required
    def api_customers():
        if request.method == 'POST':
            return _ok(customer=data.save_customer(_body()))
        return _ok(customers=data.get_customers())

    @app.route('/api/customers/<customer_id>', methods=['DELETE'])
    @login_required
    def api_delete_customer(customer_id):
        if data.delete_customer(customer_id) is None:
            raise RecordNotFound('customers', customer_id)
        return _ok()

    @app.route('/api/suppliers', methods=['GET', 'POST'])
    @login_required
    def api_suppliers():
        if request.method == 'POST':
            return _ok(supplier=data.save_supplier(_body()))
        return _ok(suppliers=data.get_suppliers())

    @app.route('/api/suppliers/<supplier_id>', methods=['DELETE'])
    @login_required
    def api_delete_supplier(supplier_id):
        if data.delete_supplier(supplier_id) is None:
            raise RecordNotFound('suppliers', supplier_id)
        return _ok()

    @app.route('/api/restocks', methods=['GET', 'POST'])
    @login_required
    def api_restocks():
        if request.method == 'POST':
            return _ok(restock=data.save_restock(_body()))
        return _ok(restocks=data.get_restocks())

    # ═══════════════════════════════════════════════════════════════════════
    # CRÉDITOS
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/credits', methods=['GET'])
    @login_required
    def api_credits():
        data.refresh_credit_statuses()
        customer_id = request.args.get('customerId')
        if customer_id:
            credits = data.get_credits_by_customer(customer_id)
        elif request.args.get('status') == 'outstanding':
            credits = data.get_outstanding_credits()
        else:
            credits = data.get_credits()
        return _ok(credits=credits, totalOutstanding=data.get_total_outstanding())

    @app.route('/api/credits/<credit_id>/payments', methods=['POST'])
    @login_required
    def api_credit_payment(credit_id):
        body = _body()
        credit = data.add_credit_payment(credit_id, body.get('amount'), body.get('note') or '')
        return _ok(credit=credit)

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURACIÓN Y RESPALDOS
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/settings', methods=['GET', 'POST'])
    @login_required
    def api_settings():
        if request.method == 'POST':
            return _ok(settings=data.save_settings(_body()))
        return _ok(settings=data.get_settings())

    @app.route('/api/backup', methods=['GET', 'POST'])
    @login_required
    def api_backup():
        if request.method == 'POST':
            upload = request.files.get('file')
            if upload is not None:
                payload = upload.read()
            else:
                payload = request.get_json(silent=True)
                if payload is None:
                    raise InvalidFormat('Archivo de respaldo inválido')
            restored = data.import_snapshot(payload)
            return _ok(restored=restored)

        response = jsonify(data.export_snapshot())
        filename = container.backup_service.file_name()
        response.headers['Content-Disposition'] = f'attachment; filename={filename}'
        return response

    @app.route('/api/backup/files', methods=['GET', 'POST'])
    @login_required
    def api_backup_files():
        if request.method == 'POST':
            path = container.backup_service.write_backup()
            return _ok(path=path)
        return _ok(**container.backup_service.get_backup_status())

    @app.route('/api/clear', methods=['POST'])
    @login_required
    def api_clear():
        data.clear_all_data()
        return _ok()

    # ═══════════════════════════════════════════════════════════════════════
    # DASHBOARD Y SINCRONIZACIÓN
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/dashboard', methods=['GET'])
    @login_required
    def api_dashboard():
        stats = container.stats_service
        return _ok(
            dashboard=stats.dashboard(),
            credits=stats.credit_stats(),
            salesSummary=stats.sales_summary_for_days(7),
        )

    @app.route('/api/sync/status', methods=['GET'])
    @login_required
    def api_sync_status():
        sync = container.sync_service
        return _ok(status=sync.status.value, connected=sync.is_connected())

    return app
