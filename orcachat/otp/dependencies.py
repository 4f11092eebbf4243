from fastapi import Request
from orcachat.otp.issuer import ThrottledCodeIssuer


def client_address(request: Request) -> str:
    """
    Originating client address: first X-Forwarded-For hop when behind a proxy, else the socket peer.
    """
    xff = request.headers.get("X-Forwarded-For")
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client and request.client.host else "unknown"


def get_code_issuer(request: Request) -> ThrottledCodeIssuer:
    return request.app.state.code_issuer
