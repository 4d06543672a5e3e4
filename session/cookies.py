"""
Cookie helpers for the HTTP layer.

The registry never sets cookies itself; these helpers let the layer in
front of it write and clear the identifier cookie with the attributes from
RegistryConfig, escaping the value the same way extract_identifier()
unescapes it.
"""

from urllib.parse import quote_plus

from starlette.responses import Response

from session.registry import RegistryConfig


def set_session_cookie(response: Response, session_id: str, config: RegistryConfig) -> None:
    """
    Attach the identifier cookie to a response.

    Args:
        response: The outgoing response.
        session_id: The identifier to carry. Escaped with query escaping.
        config: Supplies the cookie name, domain, Secure, HttpOnly and
            lifetime. A lifetime of 0 sets a browser-session cookie.
    """
    response.set_cookie(
        key=config.cookie_name,
        value=quote_plus(session_id, errors="surrogateescape"),
        max_age=config.cookie_lifetime or None,
        path="/",
        domain=config.cookie_domain,
        secure=config.cookie_secure,
        httponly=config.cookie_http_only,
    )


def delete_session_cookie(response: Response, config: RegistryConfig) -> None:
    """Expire the identifier cookie on the client."""
    response.delete_cookie(
        key=config.cookie_name,
        path="/",
        domain=config.cookie_domain,
        secure=config.cookie_secure,
        httponly=config.cookie_http_only,
    )
