"""Google sign-in for the dashboard operator.

The OAuth handshake itself is google-auth-oauthlib's web Flow; this module
only keeps the resulting token and profile in the signed session cookie.
"""

from dataclasses import asdict, dataclass
from functools import wraps
import logging
from typing import Optional

from flask import Blueprint, current_app, g, jsonify, redirect, request, session
from google_auth_oauthlib.flow import Flow

logger = logging.getLogger(__name__)

SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/analytics.readonly",
]
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

bp = Blueprint("auth", __name__, url_prefix="/auth")


@dataclass
class Credential:
    access_token: str
    refresh_token: Optional[str] = None

    @classmethod
    def from_session(cls):
        data = session.get("credential")
        if not data or not data.get("access_token"):
            return None
        return cls(access_token=data["access_token"], refresh_token=data.get("refresh_token"))


def require_auth(view):
    """401 before any upstream call when nobody is signed in."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        credential = Credential.from_session()
        if credential is None:
            return jsonify({"error": "Not authenticated"}), 401
        g.credential = credential
        return view(*args, **kwargs)

    return wrapped


def build_flow(settings, **kwargs):
    client_config = {
        "web": {
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": [settings.redirect_uri],
        }
    }
    return Flow.from_client_config(
        client_config, scopes=SCOPES, redirect_uri=settings.redirect_uri, **kwargs
    )


@bp.route("/google", methods=["GET"])
def login():
    flow = build_flow(current_app.config["SETTINGS"])
    url, state = flow.authorization_url(access_type="offline", prompt="consent")
    session["oauth_state"] = state
    session["oauth_code_verifier"] = flow.code_verifier
    return redirect(url)


@bp.route("/google/callback", methods=["GET"])
def callback():
    code = request.args.get("code")
    state = session.pop("oauth_state", None)
    verifier = session.pop("oauth_code_verifier", None)
    if not code or not state or request.args.get("state") != state:
        logger.warning("OAuth callback rejected: missing code or state mismatch")
        return redirect("/?error=1")

    try:
        flow = build_flow(current_app.config["SETTINGS"], state=state, code_verifier=verifier)
        flow.fetch_token(code=code)
        profile = flow.authorized_session().get(USERINFO_URL).json()
    except Exception as e:
        logger.error("Auth error: %s", e)
        return redirect("/?error=1")

    creds = flow.credentials
    session.permanent = True
    session["credential"] = asdict(Credential(creds.token, creds.refresh_token))
    session["user"] = {
        "id": profile.get("id"),
        "name": profile.get("name"),
        "email": profile.get("email"),
        "photo": profile.get("picture"),
    }
    logger.info("Signed in %s", session["user"]["email"])
    return redirect("/")


@bp.route("/logout", methods=["GET"])
def logout():
    session.clear()
    return redirect("/")


@bp.route("/me", methods=["GET"])
def me():
    user = session.get("user")
    if not user or Credential.from_session() is None:
        return jsonify({"loggedIn": False})
    return jsonify(
        {"loggedIn": True, "name": user.get("name"), "email": user.get("email"), "photo": user.get("photo")}
    )
