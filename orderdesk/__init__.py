"""Flask application factory."""
from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from orderdesk.database import init_db
import logging
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Logging level for the app and the orderdesk.* module loggers
    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    logging.getLogger('orderdesk').setLevel(log_level)
    app.logger.setLevel(log_level)

    is_production = app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'

    # Error tracking in production
    if app.config.get('SENTRY_DSN') and is_production:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache (degrades to no cache)
    from orderdesk.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from orderdesk.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust X-Forwarded-* headers behind Nginx
    if is_production:
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Error Handlers
    from orderdesk.exceptions import OrderDeskError

    @app.errorhandler(OrderDeskError)
    def handle_orderdesk_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"OrderDeskError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"OrderDeskError [{error.status_code}] {request.method} {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from orderdesk.blueprints.main import main_bp
    from orderdesk.blueprints.orders import orders_bp
    from orderdesk.blueprints.catalog import catalog_bp
    from orderdesk.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from orderdesk.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
