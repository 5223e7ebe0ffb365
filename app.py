"""
Hotel Management API
====================
Users, room inventory and bookings with payment-proof upload.
"""

import logging
import os
from datetime import datetime

import click
from flask import Flask, current_app, jsonify, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from errors import ApiError
from models import db, Role, User
from notifications import init_notifications
from routes import bookings_api, rooms_api, users_api
from storage import init_storage


def create_app(config_object='config.Config'):
    """Application factory"""
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # ============================================
    # EXTENSIONS
    # ============================================

    db.init_app(app)

    CORS(app,
         origins=["*"],
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"]
    )

    init_storage(app)
    init_notifications(app)

    # ============================================
    # ROUTES
    # ============================================

    app.register_blueprint(users_api, url_prefix='/api/v1/auth', name='auth')
    app.register_blueprint(users_api, url_prefix='/api/v1/users')
    app.register_blueprint(rooms_api, url_prefix='/api/v1/rooms')
    app.register_blueprint(bookings_api, url_prefix='/api/v1/bookings')

    @app.route('/uploads/<path:filename>')
    def uploaded_file(filename):
        return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)

    @app.route('/health')
    def health_check():
        """Health check endpoint"""
        return jsonify({'status': 'healthy', 'timestamp': datetime.now().isoformat()})

    @app.route('/')
    def index():
        """Root endpoint"""
        return jsonify({'message': 'api working...', 'status': 'running'})

    register_error_handlers(app)
    register_commands(app)

    # Create tables on startup
    with app.app_context():
        db.create_all()

    return app


# ============================================
# ERROR HANDLING
# ============================================

def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'fail', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        app.logger.exception("Unhandled error: %s", error)
        return jsonify({'status': 'error', 'message': 'Internal server error'}), 500


# ============================================
# CLI
# ============================================

def register_commands(app):
    @app.cli.command('init-db')
    def init_db():
        """Initialize database tables"""
        db.create_all()
        click.echo("Database tables created!")

    @app.cli.command('create-user')
    @click.option('--name', required=True)
    @click.option('--email', required=True)
    @click.option('--password', required=True)
    @click.option('--phone', required=True)
    @click.option('--role', type=click.Choice([r.name.lower() for r in Role]), default='guest')
    def create_user(name, email, password, phone, role):
        """Create an account with any role (staff accounts cannot self-register)"""
        if User.query.filter_by(email=email.lower()).first():
            raise click.ClickException('Email already exists')
        user = User(name=name, email=email.lower(), phone=phone, role=Role[role.upper()])
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created {role} {user.email} (id {user.id})")


# ============================================
# MAIN ENTRY POINT
# ============================================

if __name__ == '__main__':
    app = create_app()

    debug_mode = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'
    host = os.environ.get('HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', 8000))

    app.logger.info("Hotel Management API running on http://%s:%s (debug=%s)", host, port, debug_mode)
    app.run(debug=debug_mode, host=host, port=port)
