# ==============================================================================
# WSGI Entry Point - Para Gunicorn en producción
# ==============================================================================
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# ESTRUCTURA DEL PROYECTO:
#   repo_root/           <- Directorio de trabajo
#   ├── wsgi.py          <- Este archivo
#   ├── pyproject.toml
#   └── bigasan_pos/     <- Paquete Python
#       ├── main.py
#       ├── services/
#       └── repositories/
#
# La configuración se lee del entorno (POS_DATA_DIR, FIREBASE_CREDENTIALS...).
# ==============================================================================

import os

from bigasan_pos.main import create_app

app = create_app()

if __name__ == '__main__':
    # Desarrollo local y acceso desde la red WiFi de la tienda
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))
    app.run(host=HOST, port=PORT, debug=DEBUG)
