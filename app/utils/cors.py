from fastapi.responses import PlainTextResponse

# Permissive CORS, matching the CORSMiddleware set up in main.py
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, verif-hash",
}


def preflight_response() -> PlainTextResponse:
    """Answer an OPTIONS request without looking at its body"""
    return PlainTextResponse("ok", status_code=200, headers=CORS_HEADERS)
