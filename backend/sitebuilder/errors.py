from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException
from sitebuilder.domain.exceptions import SiteBuilderError

def register_error_handlers(app):
    @app.errorhandler(SiteBuilderError)
    def handle_site_builder_error(error):
        if error.status_code >= 500:
            current_app.logger.error("%s: %s", error.kind, error)
        response = jsonify(error.to_dict())
        response.status_code = error.status_code
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        response = jsonify({
            "error": error.name,
            "message": error.description,
        })
        response.status_code = error.code
        return response
