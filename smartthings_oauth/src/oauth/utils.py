"""Shared helpers for the OAuth flow handlers: callback parsing and HTML pages."""

from html import escape
from typing import Dict, Iterable, Optional

from starlette.requests import Request

CALLBACK_PARAMS = ("code", "state", "error", "error_description")


def extract_oauth_callback_params(request: Request) -> Dict[str, Optional[str]]:
    """Extract OAuth callback parameters.

    Args:
        request: Starlette request object

    Returns:
        Dictionary with code, state, error and error_description parameters
    """
    return {name: request.query_params.get(name) for name in CALLBACK_PARAMS}


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><title>{escape(title)}</title></head>
<body>
{body}
</body>
</html>
"""


def get_home_html(authenticated: bool) -> str:
    """Generate the home page showing the current authentication status.

    Args:
        authenticated: Whether a valid token is stored

    Returns:
        HTML content for the home page
    """
    if authenticated:
        status = """<p>Status: <strong style="color: green;">Authenticated</strong></p>
<ul>
  <li><a href="/devices">View Devices</a></li>
  <li><a href="/logout">Logout</a></li>
</ul>"""
    else:
        status = """<p>Status: <strong style="color: red;">Not Authenticated</strong></p>
<p><a href="/login">Login with SmartThings</a></p>"""
    return _page("SmartThings OAuth", f"<h1>SmartThings OAuth</h1>\n{status}")


def get_error_html(message: str) -> str:
    """Generate the page shown when a login step fails.

    Args:
        message: Description of the failure, shown verbatim (HTML-escaped)

    Returns:
        HTML content for the error page
    """
    return _page(
        "Authentication Failed",
        f"""<h1>OAuth Authentication Failed</h1>
<p>Error: {escape(message)}</p>
<p><a href="/">Back to Home</a></p>""",
    )


def get_devices_html(devices: Iterable) -> str:
    """Generate the device table page.

    Args:
        devices: Devices exposing ``display_name``, ``type`` and ``device_id``

    Returns:
        HTML content listing the devices
    """
    rows = "\n".join(
        f"<tr><td>{escape(d.display_name)}</td><td>{escape(d.type)}</td>"
        f"<td><code>{escape(d.device_id)}</code></td></tr>"
        for d in devices
    )
    return _page(
        "SmartThings Devices",
        f"""<h1>Your SmartThings Devices</h1>
<p><a href="/">Back to Home</a></p>
<table border="1" cellpadding="10">
<tr><th>Name</th><th>Type</th><th>Device ID</th></tr>
{rows}
</table>""",
    )
