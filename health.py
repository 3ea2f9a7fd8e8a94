import logging

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from liveness import Status, TransportError

logger = logging.getLogger(__name__)

STATUS_CODES = {
    Status.ONLINE: 200,
    Status.UNAUTHORIZED: 401,
    Status.NOT_FOUND: 404,
    Status.INTERNAL_ERROR: 500,
}

STATUS_MESSAGES = {
    Status.ONLINE: "Alive",
    Status.UNAUTHORIZED: "Unauthorized",
    Status.NOT_FOUND: "No response from the bot",
    Status.INTERNAL_ERROR: "Cannot check the status of this bot",
}


def message(text: str, code: int):
    """Builds the informational JSON body with its status code."""
    return jsonify({"message": text, "status": 200 <= code < 300}), code


def create_app(service) -> Flask:
    """Builds the Flask app serving `GET /ping/<bot_identity>` for `service`."""
    app = Flask(__name__)

    @app.route("/ping/<bot_identity>", methods=["GET"])
    def ping(bot_identity):
        token = request.headers.get("Authorization")
        if token is None:
            raise TransportError("Missing `Authorization` header", status_code=401)
        status = service.check(token, bot_identity)
        return message(STATUS_MESSAGES[status], STATUS_CODES[status])

    @app.errorhandler(TransportError)
    def transport_error(e):
        logger.info(f"Rejected request to {request.path}: {e.message}")
        return message(e.message, e.status_code)

    @app.errorhandler(404)
    def not_found(e):
        return message("Not Found", 404)

    @app.errorhandler(Exception)
    def server_error(e):
        if isinstance(e, HTTPException) and e.code < 500:
            return message(e.name, e.code)
        logger.error(f"Unhandled error on {request.path}", exc_info=e)
        return message("Server Error", 500)

    @app.after_request
    def add_server_headers(response):
        response.headers["Content-Type"] = "application/json"
        response.headers["X-Powered-By"] = "Python/Flask"
        return response

    return app
