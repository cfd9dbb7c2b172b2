"""
VersionCompare - Main Flask Application
Serves the version comparison API under /api/versions
"""
import uuid

from flask import Flask, g, jsonify, request

from config_logging import (
    get_config, get_logger, set_config, StructuredLogger, APP_NAME, VERSION
)
from version_compare import vc_blueprint, VersionCompareService

logger = get_logger('app')


def create_app(config=None, store=None):
    """
    Build the Flask application.

    Args:
        config: AppConfig to install; defaults to the environment
        store: VersionStore to serve from; defaults to the SQLite store
    """
    if config is not None:
        set_config(config)
    config = get_config()

    is_valid, errors = config.validate()
    if not is_valid:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    app = Flask(__name__)
    app.json.sort_keys = False
    app.extensions['version_compare'] = VersionCompareService(store=store, config=config)

    @app.before_request
    def assign_correlation_id():
        correlation_id = request.headers.get('X-Correlation-ID') or str(uuid.uuid4())[:12]
        StructuredLogger.set_correlation_id(correlation_id)
        g.correlation_id = correlation_id

    @app.after_request
    def echo_correlation_id(response):
        response.headers['X-Correlation-ID'] = getattr(g, 'correlation_id', '')
        return response

    @app.route('/')
    def index():
        return jsonify({'name': APP_NAME, 'version': VERSION, 'api': '/api/versions'})

    app.register_blueprint(vc_blueprint, url_prefix='/api/versions')
    logger.info("Version compare API registered", db_path=str(config.db_path),
                store=type(app.extensions['version_compare'].store).__name__)
    return app


if __name__ == '__main__':
    config = get_config()
    print("=" * 60)
    print(f"  {APP_NAME} v{VERSION}")
    print(f"  Starting server at http://{config.host}:{config.port}")
    print("=" * 60)
    create_app().run(host=config.host, port=config.port, debug=config.debug)
