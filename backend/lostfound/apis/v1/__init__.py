from flask import Blueprint, Flask

from ...modules.auth import bp as auth_bp
from ...modules.categories.routes import bp as categories_bp
from ...modules.claims.routes import bp as claims_bp
from ...modules.matches.routes import bp as matches_bp
from ...modules.reports.routes import bp as reports_bp
from ...modules.users.routes import bp as users_bp


def register_api(app: Flask) -> None:
    api_v1 = Blueprint("api_v1", __name__, url_prefix="/api/v1")

    # Mount feature blueprints
    api_v1.register_blueprint(auth_bp)
    api_v1.register_blueprint(categories_bp)
    api_v1.register_blueprint(reports_bp)
    api_v1.register_blueprint(matches_bp)
    api_v1.register_blueprint(claims_bp)
    api_v1.register_blueprint(users_bp)

    app.register_blueprint(api_v1)
