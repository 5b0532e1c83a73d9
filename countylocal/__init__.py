# countylocal/__init__.py

import logging
from flask import Flask, jsonify, g
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
from flask_login import LoginManager
from .config import Config

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Configure logging to show INFO level messages
    app.logger.setLevel(logging.INFO)
    if not app.logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        formatter = logging.Formatter('[%(asctime)s] %(levelname)s: %(message)s')
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)

    db.init_app(app)
    migrate.init_app(app, db)

    CORS(app, supports_credentials=True, origins=app.config['CORS_ORIGINS'])

    login_manager.init_app(app)

    # --- 1. JSON 401/403 HANDLER FOR API CLIENTS ---
    @login_manager.unauthorized_handler
    def unauthorized():
        # The request loader records why the bearer token was rejected
        message, status_code = g.get('auth_error', ("Authentication required.", 401))
        return jsonify({"message": message}), status_code

    from .jwt_auth import load_identity_from_request
    login_manager.request_loader(load_identity_from_request)

    @login_manager.user_loader
    def load_user(user_id):
        from .models import UserIdentity
        return db.session.get(UserIdentity, user_id)

    # --- 2. REGISTER BLUEPRINTS ---
    from .api.identity import bp as identity_bp
    from .api.admin import bp as admin_bp
    from .api.super_admin import bp as super_admin_bp
    from .api.vendor import bp as vendor_bp
    from .api.deals import bp as deals_bp
    from .api.vouchers import bp as vouchers_bp
    from .api.purchases import bp as purchases_bp
    from .api.redemption import bp as redemption_bp
    from .api.public import bp as public_bp
    from .api.public import county_bp

    for blueprint in (identity_bp, admin_bp, super_admin_bp, vendor_bp, deals_bp,
                      vouchers_bp, purchases_bp, redemption_bp, public_bp):
        app.register_blueprint(blueprint, url_prefix='/api')

    # County-prefixed discovery routes live at the root (e.g. /lake-county/deals)
    app.register_blueprint(county_bp)

    with app.app_context():
        from . import models  # noqa: F401

    return app
