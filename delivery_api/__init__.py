# --- delivery_api/__init__.py ---
from flask import Flask

from .config import Config
from .extensions import db, jwt, cors, migrate
from .logger import configure_logging, get_logger
from .utils.api import ok

def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)
    config_object = config_object or Config
    app.config.from_object(config_object)
    config_object.init_app(app)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))
    log = get_logger("delivery_api")

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": "*"}})
    migrate.init_app(app, db)

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return ok("API running")

    with app.app_context():
        from . import model  # noqa: F401  (register tables)
        db.create_all()

    log.debug("app created with blueprints {}", sorted(app.blueprints.keys()))
    return app
