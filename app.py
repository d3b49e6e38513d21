import logging

from flask import Flask, jsonify
from flask_login import LoginManager
from flask_migrate import Migrate

from models import db, User
from routes import register_blueprints


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    app.logger.setLevel(level)


def create_app(config_object='config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    Migrate(app, db)

    login_manager = LoginManager()
    login_manager.init_app(app)
    login_manager.login_view = 'auth.login'

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'message': 'Yetkiniz bulunmuyor.'}), 401

    register_blueprints(app)

    return app


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        db.create_all()
    app.run(host='0.0.0.0', port=5005, debug=True)
