from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_now, get_optional_user
from app.api.routes import pairing_payload, phase_payload
from app.api.tasks import verification_payload
from app.crud import (
    get_completed_task,
    get_pairing_for_member,
    get_planned_task,
    list_available_candidates,
    list_incoming_requests,
    list_pairings_for,
)
from app.models import User
from app.rules.phase import local_day
from app.schemas import CompletedTaskOut, PlannedTaskOut, PublicUserOut, UserOut

router = APIRouter(tags=["views"])

_STYLE = """
  <style>
    body { font-family: system-ui, -apple-system, Segoe UI, Roboto, Arial; margin: 0; background: #0b1220; color: #e6edf8; }
    .wrap { max-width: 480px; margin: 0 auto; padding: 18px; }
    .card { background:#111c31; border:1px solid #2a3b5f; border-radius:12px; padding:12px; margin-bottom:12px; }
    input, button { width:100%; box-sizing:border-box; padding:10px; margin:4px 0; border-radius:8px; border:1px solid #30466f; background:#0d1930; color:#e6edf8; }
    button { cursor:pointer; background:#1d4ed8; border-color:#1d4ed8; }
    a { color:#93c5fd; }
    .muted { color:#9fb3d4; }
  </style>
"""


def _page(title: str, body: str) -> str:
    return f"""
<!doctype html>
<html lang='en'>
<head>
  <meta charset='utf-8'>
  <meta name='viewport' content='width=device-width,initial-scale=1'>
  <title>{title}</title>
{_STYLE}
</head>
<body>
<div class='wrap'>
{body}
</div>
</body>
</html>
"""


def _auth_script(path: str, fields: str) -> str:
    return f"""
<script>
async function submitForm(ev){{
  ev.preventDefault();
  const f = ev.target;
  const body = {{{fields}}};
  const r = await fetch('{path}', {{method:'POST', headers:{{'content-type':'application/json'}}, body: JSON.stringify(body)}});
  if(!r.ok){{ const e = await r.json(); document.getElementById('err').textContent = e.detail || 'Request failed'; return; }}
  window.location = '/dashboard';
}}
</script>
"""


def _login_redirect() -> RedirectResponse:
    return RedirectResponse(url="/login", status_code=303)


@router.get("/", response_class=HTMLResponse)
def landing() -> str:
    return _page(
        "Accountability Partner",
        """
  <div class='card'>
    <h2>Accountability Partner</h2>
    <p class='muted'>Pair up for the day, plan one task, prove you did it before your deadline,
    and verify your partner in the 30 minutes after.</p>
    <p><a href='/login'>Log in</a> &middot; <a href='/register'>Create an account</a></p>
  </div>
""",
    )


@router.get("/login", response_class=HTMLResponse)
def login_page() -> str:
    return _page(
        "Log in",
        """
  <div class='card'>
    <h2>Log in</h2>
    <form onsubmit='submitForm(event)'>
      <input name='email' type='email' placeholder='Email' required>
      <input name='password' type='password' placeholder='Password' required>
      <button type='submit'>Log in</button>
    </form>
    <p id='err' class='muted'></p>
    <p><a href='/register'>No account yet?</a></p>
  </div>
"""
        + _auth_script("/v1/auth/login", "email: f.email.value, password: f.password.value"),
    )


@router.get("/register", response_class=HTMLResponse)
def register_page() -> str:
    return _page(
        "Register",
        """
  <div class='card'>
    <h2>Create an account</h2>
    <form onsubmit='submitForm(event)'>
      <input name='username' placeholder='Username' required>
      <input name='email' type='email' placeholder='Email' required>
      <input name='password' type='password' placeholder='Password (8+ characters)' required>
      <input name='timezone' placeholder='Timezone, e.g. Europe/Berlin' required>
      <button type='submit'>Register</button>
    </form>
    <p id='err' class='muted'></p>
  </div>
<script>document.querySelector("input[name='timezone']").value = Intl.DateTimeFormat().resolvedOptions().timeZone || 'UTC';</script>
"""
        + _auth_script(
            "/v1/auth/register",
            "username: f.username.value, email: f.email.value, password: f.password.value, timezone: f.timezone.value",
        ),
    )


@router.get("/dashboard")
def dashboard(
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    if user is None:
        return _login_redirect()
    pairings = [pairing_payload(db, p, user, now) for p in list_pairings_for(db, user, now)]
    return JSONResponse(
        {
            "user": UserOut.model_validate(user).model_dump(mode="json"),
            "phase": phase_payload(user, now),
            "pairings": pairings,
            "incoming_requests": len(list_incoming_requests(db, user)),
        }
    )


@router.get("/task-upload/{pairing_id}")
def task_upload_view(
    pairing_id: int,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    if user is None:
        return _login_redirect()
    pairing = get_pairing_for_member(db, pairing_id, user)
    today = local_day(user.timezone, now)
    planned = get_planned_task(db, pairing.id, user.id, today)
    completed = get_completed_task(db, pairing.id, user.id, today)
    return JSONResponse(
        {
            "pairing": pairing_payload(db, pairing, user, now),
            "phase": phase_payload(user, now),
            "planned": PlannedTaskOut.model_validate(planned).model_dump(mode="json") if planned else None,
            "completed": CompletedTaskOut.model_validate(completed).model_dump(mode="json") if completed else None,
        }
    )


@router.get("/task-verification/{pairing_id}")
def task_verification_view(
    pairing_id: int,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    if user is None:
        return _login_redirect()
    pairing = get_pairing_for_member(db, pairing_id, user)
    return JSONResponse(verification_payload(db, pairing, user, now))


@router.get("/available-users")
def available_users_view(
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    if user is None:
        return _login_redirect()
    candidates = list_available_candidates(db, user, now)
    return JSONResponse(
        {
            "count": len(candidates),
            "items": [PublicUserOut.model_validate(c).model_dump() for c in candidates],
        }
    )
