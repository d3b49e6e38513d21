from .auth import auth_bp
from .clients import clients_bp
from .communications import communications_bp
from .main import main_bp
from .profile import profile_bp


def register_blueprints(app):
    app.register_blueprint(auth_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(communications_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(profile_bp)
