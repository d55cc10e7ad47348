from __future__ import annotations

from html import escape

PAGE_STYLE = """
body { font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; max-width: 1200px;
       margin: 0 auto; padding: 20px; color: #333; background: #f5f5f5; }
.card { background: white; padding: 20px; border-radius: 8px; margin-bottom: 20px; }
table { width: 100%; border-collapse: collapse; }
th, td { padding: 8px; text-align: left; border-bottom: 1px solid #ddd; }
th { background: #f8f9fa; }
.good { color: #27ae60; font-weight: bold; }
"""


def render_page(title: str, body: str) -> str:
    """Wrap an HTML fragment in a standalone report page."""
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="UTF-8">\n'
        f"<title>{escape(title)}</title>\n<style>{PAGE_STYLE}</style>\n</head>\n"
        f"<body>\n<h1>{escape(title)}</h1>\n{body}\n</body>\n</html>\n"
    )
