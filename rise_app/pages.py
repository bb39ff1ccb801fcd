"""
HTML pages shown to the merchant at the end of the installation flow.
Never include upstream error bodies here; those go to the server log only.
"""
import html

from fastapi.responses import HTMLResponse


def installation_complete_page(instance_id: str, app_name: str) -> HTMLResponse:
    name = html.escape(app_name)
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Installation complete</title></head>
<body>
  <h1>{name} installed</h1>
  <p>Installation complete for instance <code>{html.escape(instance_id)}</code>.</p>
  <p>You can close this window and return to Rise.ai.</p>
</body>
</html>"""
    )


def error_page(title: str, message: str, status_code: int = 500) -> HTMLResponse:
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body>
  <h1>{html.escape(title)}</h1>
  <p>{html.escape(message)}</p>
</body>
</html>""",
        status_code=status_code,
    )
