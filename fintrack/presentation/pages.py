"""Server-rendered pages: login form, dashboard and user administration."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, RedirectResponse
from jinja2 import Environment
from markupsafe import Markup
from sqlalchemy.orm import Session

from fintrack.data.base import get_db
from fintrack.domain.models.user import Identity
from fintrack.domain.services.auth_service import get_user_profile, list_users
from fintrack.domain.services.report_service import dashboard_report
from fintrack.presentation.guard import (
    current_identity,
    optional_identity,
    require_superadmin,
)

router = APIRouter(tags=["pages"], include_in_schema=False)


def format_rupiah(amount) -> str:
    whole = int(round(amount or 0))
    return "Rp " + f"{whole:,}".replace(",", ".")


templates = Environment(autoescape=True)
templates.filters["rupiah"] = format_rupiah

LAYOUT = templates.from_string("""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{{ title }} | FinTrack</title>
  <style>
    body { font-family: sans-serif; margin: 2rem; color: #1f2937; }
    table { border-collapse: collapse; margin-bottom: 1.5rem; }
    th, td { border: 1px solid #e5e7eb; padding: .4rem .8rem; text-align: left; }
    nav a { margin-right: 1rem; }
  </style>
</head>
<body>
{% if user %}
  <nav>
    <a href="/">Dashboard</a>
    {% if user.role.value == "superadmin" %}<a href="/admin/users">Users</a>{% endif %}
    <span>{{ user.name }} ({{ user.role.value }})</span>
    <button onclick="fetch('/api/auth/logout', {method: 'POST'}).then(() => location.href = '/login')">Logout</button>
  </nav>
{% endif %}
{{ body }}
</body>
</html>
""")

LOGIN_BODY = templates.from_string("""
<h1>FinTrack</h1>
<form id="login-form">
  <p><label>Email <input type="email" name="email" required></label></p>
  <p><label>Password <input type="password" name="password" required></label></p>
  <p id="login-error" style="color: #b91c1c"></p>
  <button type="submit">Sign in</button>
</form>
<script>
  document.getElementById("login-form").addEventListener("submit", async (event) => {
    event.preventDefault();
    const form = new FormData(event.target);
    const response = await fetch("/api/auth/login", {
      method: "POST",
      headers: {"Content-Type": "application/json"},
      body: JSON.stringify({email: form.get("email"), password: form.get("password")}),
    });
    if (response.ok) {
      location.href = {{ redirect_to | tojson }};
    } else {
      const data = await response.json();
      document.getElementById("login-error").textContent = data.error || "Login failed";
    }
  });
</script>
""")

DASHBOARD_BODY = templates.from_string("""
<h1>Dashboard</h1>
<p>Total expenses: <strong>{{ report.grand_total | rupiah }}</strong>
  across {{ report.invoice_count }} invoices</p>

<h2>Recent invoices</h2>
<table>
  <tr><th>Number</th><th>Title</th><th>Date</th><th>Division</th><th>Total</th></tr>
  {% for inv in report.recent_invoices %}
  <tr>
    <td>{{ inv.invoice_number }}</td>
    <td>{{ inv.title }}</td>
    <td>{{ inv.date[:16] | replace("T", " ") }}</td>
    <td>{{ inv.division_name or "-" }}</td>
    <td>{{ inv.total_amount | rupiah }}</td>
  </tr>
  {% else %}
  <tr><td colspan="5">No invoices yet</td></tr>
  {% endfor %}
</table>

<h2>Last 7 days</h2>
<table>
  <tr><th>Date</th><th>Total</th></tr>
  {% for point in report.trend %}
  <tr><td>{{ point.date }}</td><td>{{ point.total | rupiah }}</td></tr>
  {% endfor %}
</table>

<h2>By category</h2>
<table>
  <tr><th>Category</th><th>Total</th><th>Share</th></tr>
  {% for group in report.by_category %}
  <tr>
    <td>{{ group.key }}</td>
    <td>{{ group.total | rupiah }}</td>
    <td>{{ "%.1f" | format(group.percentage) }}%</td>
  </tr>
  {% endfor %}
</table>
""")

USERS_BODY = templates.from_string("""
<h1>Users</h1>
<table>
  <tr><th>Name</th><th>Email</th><th>Role</th><th>Created</th></tr>
  {% for u in users %}
  <tr>
    <td>{{ u.name }}</td>
    <td>{{ u.email }}</td>
    <td>{{ u.role.value }}</td>
    <td>{{ u.created_at.strftime("%Y-%m-%d") if u.created_at else "" }}</td>
  </tr>
  {% endfor %}
</table>
<p>Manage accounts through <code>/api/admin/users</code>.</p>
""")


def render_page(title: str, body: str, user=None) -> HTMLResponse:
    # The body is already escaped by its own template.
    return HTMLResponse(LAYOUT.render(title=title, body=Markup(body), user=user))


def safe_redirect_target(target: Optional[str]) -> str:
    """Only same-site paths are followed after login."""
    if not target or not target.startswith("/") or target.startswith("//"):
        return "/"
    return target


@router.get("/login")
def login_page(
    redirect: Optional[str] = Query(None),
    identity: Optional[Identity] = Depends(optional_identity),
):
    if identity is not None:
        return RedirectResponse("/")
    target = safe_redirect_target(redirect)
    return render_page("Login", LOGIN_BODY.render(redirect_to=target))


@router.get("/")
def dashboard_page(
    identity: Identity = Depends(current_identity), db: Session = Depends(get_db)
):
    user = get_user_profile(db, identity.user_id)
    body = DASHBOARD_BODY.render(report=dashboard_report(db))
    return render_page("Dashboard", body, user=user)


@router.get("/admin/users")
def users_page(
    identity: Identity = Depends(require_superadmin), db: Session = Depends(get_db)
):
    user = get_user_profile(db, identity.user_id)
    return render_page("Users", USERS_BODY.render(users=list_users(db)), user=user)
