"""
AxixFinance Accrual Backend - Flask Application
Main application entry point with configuration, blueprints and scheduler
"""

from flask import Flask, jsonify
from flask_migrate import Migrate
import logging
from logging.handlers import RotatingFileHandler
import os
from datetime import datetime

# Import configuration
from config import Config

# Import database
from models import db

# Import blueprints
from api.jobs import jobs_bp

# Import services
from services.scheduler import init_scheduler


def create_app(config_class=Config):
    """Application factory pattern"""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    Migrate(app, db)

    # Setup logging
    setup_logging(app)

    # Register blueprints
    app.register_blueprint(jobs_bp)  # Daily job trigger and monitoring

    # Health check endpoint
    @app.route('/api/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.utcnow().isoformat(),
            'version': '1.0.0'
        })

    # Error handlers
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'error': 'Internal server error'}), 500

    # Initialize database tables
    with app.app_context():
        try:
            db.create_all()
            app.logger.info('Database tables created successfully')
        except Exception as e:
            app.logger.warning(f'Database tables may already exist: {e}')

    # Setup background tasks
    if not app.debug and not app.testing and app.config.get('SCHEDULER_ENABLED', True):
        app.extensions['scheduler'] = init_scheduler(app)

    app.logger.info('AxixFinance accrual backend startup complete')

    return app


def setup_logging(app):
    """Configure application logging"""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)

    # Service modules log through their own module loggers
    logging.getLogger('services').setLevel(level)

    if not app.debug and not app.testing:
        log_file = app.config.get('LOG_FILE', 'logs/axix_accrual.log')
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=app.config.get('LOG_MAX_BYTES', 10240000),
            backupCount=app.config.get('LOG_BACKUP_COUNT', 10)
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(level)
        app.logger.addHandler(file_handler)
        app.logger.setLevel(level)

        # Route service loggers to the same file
        services_logger = logging.getLogger('services')
        if file_handler not in services_logger.handlers:
            services_logger.addHandler(file_handler)

        app.logger.info('AxixFinance accrual backend startup')


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True, host='0.0.0.0', port=5001)
