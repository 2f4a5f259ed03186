"""
Jinja2 environment for HTML emails and invoice PDFs.
"""
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def format_amount(amount: int, currency: str = "USD") -> str:
    """Minor units → "USD 1,500.00"."""
    return f"{currency} {amount / 100:,.2f}"


_env.filters["amount"] = format_amount


def render_template(name: str, **context) -> str:
    return _env.get_template(name).render(**context)
