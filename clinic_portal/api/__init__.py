from flask import Blueprint

api_bp = Blueprint('api', __name__)
functions_bp = Blueprint('functions', __name__)

from . import routes, function_routes  # noqa: E402,F401
