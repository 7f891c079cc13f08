import logging

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate

from config import config_dict, load_settings
from manage import register_commands
from models import db
from routes.admin import admin_bp
from routes.authentication import auth_bp
from routes.files import files_bp
from routes.learning import learning_bp
from routes.quiz import quiz_bp
from routes.tasks import task_bp
from utils.dropbox_service import DropboxStorage
from utils.errors import register_error_handlers
from utils.helpers import success_response
from utils.logging_utils import configure_logging

logger = logging.getLogger(__name__)

migrate = Migrate()


def create_app(settings=None, storage=None):
    """Build the application.

    ``settings`` defaults to the environment (after loading ``.env``); a
    missing or invalid variable stops startup with a ConfigError.
    """
    if settings is None:
        load_dotenv()
        settings = load_settings()

    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.config.from_object(config_dict[settings.env])
    app.config.update(settings.to_flask_config())
    app.extensions["storage"] = storage or DropboxStorage(settings)

    CORS(app, resources={r"/api/*": {"origins": list(settings.cors_origins), "supports_credentials": True}})

    db.init_app(app)
    migrate.init_app(app, db)

    register_error_handlers(app)
    register_commands(app)

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(task_bp, url_prefix='/api/tasks')
    app.register_blueprint(quiz_bp, url_prefix='/api/quiz')
    app.register_blueprint(learning_bp, url_prefix='/api/learning')
    app.register_blueprint(files_bp, url_prefix='/api/files')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    @app.route('/health')
    def health():
        return success_response({"status": "ok"})

    logger.info("Application started (env=%s)", settings.env)
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config['DEBUG'])
