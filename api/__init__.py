"""HTTP surface of the billing core. Build the app with api.app.create_app."""

from api.base import APIResponse, ErrorCodes, error_response, request_id_of, success_response
