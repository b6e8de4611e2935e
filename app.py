import logging

from flask import Flask, jsonify, render_template, request

from config import Config, validate_config
from database import db
from storage import DocumentStorage
from utils import register_template_filters

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    validate_config(app.config)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # Initialize database
    db.init_app(app)

    app.extensions['document_storage'] = DocumentStorage.from_config(app.config)
    register_template_filters(app)

    from public import public_bp
    from admin import admin_bp
    app.register_blueprint(public_bp)
    app.register_blueprint(admin_bp)

    register_error_handlers(app)
    return app


def wants_json():
    return request.is_json or request.path.startswith('/admin/api/')


def register_error_handlers(app):
    @app.errorhandler(404)
    def page_not_found(e):
        if wants_json():
            return jsonify({'success': False, 'error': 'Not found'}), 404
        return render_template('404.html'), 404

    @app.errorhandler(413)
    def too_large(e):
        limit_mb = app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
        message = f'Upload too large (max {limit_mb}MB per submission)'
        if wants_json():
            return jsonify({'success': False, 'error': message}), 413
        return render_template('500.html', message=message), 413

    @app.errorhandler(500)
    def internal_server_error(e):
        logger.error('Internal error: %s', e)
        if wants_json():
            return jsonify({'success': False, 'error': 'Internal server error'}), 500
        return render_template('500.html'), 500


def init_database(app):
    with app.app_context():
        db.create_all()
        logger.info('✓ Database initialised')


# Entry point
if __name__ == '__main__':
    app = create_app()
    init_database(app)
    print('\n' + '=' * 60)
    print('APPLICATION READY')
    print('=' * 60)
    print(f"Database: {app.config['SQLALCHEMY_DATABASE_URI'][:50]}...")
    print(f"Email API: {'✓' if app.config['RESEND_API_KEY'] else '✗'}")
    print('=' * 60 + '\n')

    app.run(debug=True, host='0.0.0.0', port=5000)
