from flask import Flask

from config import Config
from db import db
from services.cache import stats_cache


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config['LOG_LEVEL'])

    db.init_app(app)
    stats_cache.max_age_seconds = app.config['STATS_CACHE_MAX_AGE_SECONDS']
    stats_cache.clear()

    from blueprints.routes import bp
    app.register_blueprint(bp)

    with app.app_context():
        from models import initialize_database
        initialize_database(app.config.get('SEED_DEFAULT_PLAN', False))

    return app


if __name__ == '__main__':
    create_app().run(debug=True)
