"""Inline HTML for the few pages this service renders itself.

No template engine: every page is one card with a heading and a line of
text.  All interpolated values go through html.escape.
"""

from __future__ import annotations

import html
from http import HTTPStatus

from fastapi.responses import HTMLResponse

_PAGE_HTML = """\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{title}</title>
  <style>
    body {{
      font-family: system-ui, -apple-system, sans-serif;
      display: flex; justify-content: center; align-items: center;
      min-height: 100vh; margin: 0; background: #f5f5f5;
    }}
    .card {{
      background: #fff; padding: 2rem; border-radius: 8px;
      box-shadow: 0 2px 8px rgba(0,0,0,.1); min-width: 320px;
      text-align: center;
    }}
    h1 {{ font-size: 1.25rem; margin: 0 0 1rem; }}
    img {{ border-radius: 50%; width: 64px; height: 64px; }}
    button, .button {{
      display: inline-block; margin-top: 1rem; padding: .5rem 1rem;
      background: #111; color: #fff; border: none; border-radius: 4px;
      font-size: .95rem; cursor: pointer; text-decoration: none;
    }}
  </style>
</head>
<body>
  <div class="card">
    <h1>{heading}</h1>
    {body}
  </div>
</body>
</html>
"""


def render_page(heading: str, body: str, *, status_code: int = 200) -> HTMLResponse:
    """*body* is trusted markup; escape user data before passing it in."""
    page = _PAGE_HTML.format(
        title=html.escape(heading), heading=html.escape(heading), body=body
    )
    return HTMLResponse(
        page, status_code=status_code, headers={"Cache-Control": "no-store"}
    )


def error_page(message: str, *, status_code: int) -> HTMLResponse:
    body = (
        f"<p>{html.escape(message)}</p>"
        '<a class="button" href="/login">Try again</a>'
    )
    return render_page("Sign-in failed", body, status_code=status_code)


def home_page(name: str, email: str | None, picture: str | None) -> HTMLResponse:
    parts = []
    if picture and picture.startswith("https://"):
        parts.append(f'<img src="{html.escape(picture, quote=True)}" alt="">')
    parts.append(f"<p>Signed in as <strong>{html.escape(name)}</strong></p>")
    if email:
        parts.append(f"<p>{html.escape(email)}</p>")
    parts.append(
        '<form method="post" action="/logout"><button type="submit">'
        "Sign out</button></form>"
    )
    return render_page("Welcome", "\n    ".join(parts))


def status_page(status_code: int) -> HTMLResponse:
    """Generic page for an HTTP error a browser navigated into."""
    try:
        message = HTTPStatus(status_code).phrase
    except ValueError:
        message = "Something went wrong"
    body = f'<p>{html.escape(message)}</p><a class="button" href="/">Home</a>'
    return render_page(f"Error {status_code}", body, status_code=status_code)
