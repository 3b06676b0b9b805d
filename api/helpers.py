"""
MODULE_DESCRIPTION: API Helper Functions - Debug Error Responses

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

Error response helpers shared by the exception handlers.

traceback_json_response builds a 500-style JSON body carrying the full
traceback, but only when DEBUG_TRACEBACK=1. In every other environment it
returns None and the caller falls back to a generic message, so internal
paths, file names and exception text never reach a client by default.

Response Format (debug mode):
    {
        "detail": "<exception message>",
        "traceback": "<full stack trace>",
        "request_id": "<id>"    # optional
    }

Security Warning:
    Only enable DEBUG_TRACEBACK=1 in development environments.
===================================================================================
"""

import os
import traceback

from fastapi.responses import JSONResponse


# ==============================================================================
# ERROR RESPONSE HELPERS
# ==============================================================================


def traceback_json_response(e, status_code=500, request_id=None):
    """JSON response with the traceback of ``e`` when DEBUG_TRACEBACK=1, else None.

    Example:
        response = traceback_json_response(exc)
        if response:
            return response
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    """
    if os.environ.get("DEBUG_TRACEBACK") != "1":
        return None

    response_content = {
        "detail": str(e),
        "traceback": "".join(traceback.format_exception(type(e), e, e.__traceback__)),
    }
    if request_id:
        response_content["request_id"] = request_id

    return JSONResponse(status_code=status_code, content=response_content)
