import json
import logging

logger = logging.getLogger(__name__)

REDACTED_FIELDS = ("pin", "current_pin")


def redact_body(raw: str) -> str:
    """Mask transaction PINs before a request body reaches the logs."""
    try:
        payload = json.loads(raw)
    except ValueError:
        return raw
    if isinstance(payload, dict):
        for field in REDACTED_FIELDS:
            if field in payload:
                payload[field] = "****"
    return json.dumps(payload)


class RequestResponseLoggingMiddleware:
    """
    Logs each API request method, path and body (PINs masked),
    and the corresponding response status and content.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_body = ""
        content_type = request.META.get("CONTENT_TYPE", "")

        # Skip logging body for file uploads
        if "multipart/form-data" in content_type:
            request_body = "<Multipart form data - body not logged>"
        else:
            try:
                if request.method in ["POST", "PUT", "PATCH"] and request.body:
                    request_body = redact_body(request.body.decode("utf-8"))
            except UnicodeDecodeError:
                request_body = "<Could not decode body>"

        logger.info(
            "API Request: %s %s Body: %s",
            request.method,
            request.get_full_path(),
            request_body,
        )

        response = self.get_response(request)

        response_content = ""
        response_type = response.get("Content-Type", "")

        # Only log small text/json content to avoid massive logs for files
        if response_type.startswith("application/json") or response_type.startswith("text/"):
            if getattr(response, "streaming", False):
                response_content = "<Streaming content>"
            else:
                try:
                    response_content = response.content.decode("utf-8")
                except UnicodeDecodeError:
                    response_content = "<Could not decode content>"
        else:
            response_content = f"<Content-Type: {response_type}>"

        logger.info(
            "API Response: %s %s Status: %s Content: %s",
            request.method,
            request.get_full_path(),
            response.status_code,
            response_content,
        )

        return response
