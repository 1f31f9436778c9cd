"""VidTube CLI — log in, inspect your account, rotate and revoke sessions.

Usage:
    vidtube login -u alice                 # prompts for password, stores tokens
    vidtube whoami                         # current account
    vidtube refresh                        # rotate the refresh token
    vidtube channel bob                    # channel profile + subscriber counts
    vidtube history                        # watch history
    vidtube logout                         # revoke refresh token, forget tokens

Tokens are kept in a JSON session file (VIDTUBE_SESSION_FILE, default
~/.vidtube/session.json). The CLI has no cookie jar, so it sends the access
token as a Bearer header and the refresh token in the request body.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from pathlib import Path
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("VIDTUBE_API_URL", DEFAULT_API_URL).rstrip("/")


def _session_file() -> Path:
    default = Path.home() / ".vidtube" / "session.json"
    return Path(os.environ.get("VIDTUBE_SESSION_FILE", str(default)))


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the VidTube backend."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when an event loop is already running
    (e.g. CliRunner inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _load_session() -> dict:
    path = _session_file()
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text())
    except (OSError, json.JSONDecodeError):
        return {}


def _save_session(data: dict) -> None:
    path = _session_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    path.chmod(0o600)


def _clear_session() -> None:
    _session_file().unlink(missing_ok=True)


def _require_session() -> dict:
    session = _load_session()
    if not session.get("access_token"):
        click.secho("Not logged in. Run `vidtube login` first.", fg="red", err=True)
        sys.exit(1)
    return session


def _auth_headers(session: dict) -> dict:
    return {"Authorization": f"Bearer {session['access_token']}"}


def _fail(resp: httpx.Response) -> None:
    """Print the error envelope and exit non-zero."""
    try:
        message = resp.json().get("message", resp.text)
    except ValueError:
        message = resp.text
    click.secho(f"Error ({resp.status_code}): {message}", fg="red", err=True)
    sys.exit(1)


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table. columns: (header, dict_key, width)."""
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="vidtube")
def main():
    """VidTube — account and session client."""


@main.command()
@click.option("--username", "-u", help="Username (or use --email)")
@click.option("--email", "-e", help="Email (or use --username)")
@click.option("--password", "-p", prompt=True, hide_input=True)
def login(username: Optional[str], email: Optional[str], password: str):
    """Log in and store the token pair."""
    if not (username or email):
        click.secho("Error: --username or --email is required", fg="red", err=True)
        sys.exit(1)

    async def _go():
        async with _client() as c:
            return await c.post(
                "/api/v1/users/login",
                json={"username": username, "email": email, "password": password},
            )

    resp = _run(_go())
    if resp.status_code != 200:
        _fail(resp)
    data = resp.json()["data"]
    _save_session({
        "access_token": data["access_token"],
        "refresh_token": data["refresh_token"],
        "username": data["user"]["username"],
    })
    click.secho(f"Logged in as {data['user']['username']}", fg="green")


@main.command()
@click.option("--json-output", "as_json", is_flag=True, help="Print raw JSON")
def whoami(as_json: bool):
    """Show the current account."""
    session = _require_session()

    async def _go():
        async with _client() as c:
            return await c.get("/api/v1/users/current-user", headers=_auth_headers(session))

    resp = _run(_go())
    if resp.status_code != 200:
        _fail(resp)
    user = resp.json()["data"]
    if as_json:
        click.echo(_pretty_json(user))
        return
    click.secho(user["username"], bold=True)
    click.echo(f"  name:  {user['full_name']}")
    click.echo(f"  email: {user['email']}")
    click.echo(f"  id:    {user['id']}")


@main.command()
def refresh():
    """Rotate the refresh token and store the new pair."""
    session = _require_session()

    async def _go():
        async with _client() as c:
            return await c.post(
                "/api/v1/users/refresh-token",
                json={"refresh_token": session.get("refresh_token")},
            )

    resp = _run(_go())
    if resp.status_code != 200:
        if resp.status_code == 401:
            _clear_session()
        _fail(resp)
    data = resp.json()["data"]
    session.update(access_token=data["access_token"], refresh_token=data["refresh_token"])
    _save_session(session)
    click.secho("Session refreshed", fg="green")


@main.command()
def logout():
    """Revoke the session on the server and forget local tokens."""
    session = _require_session()

    async def _go():
        async with _client() as c:
            return await c.post("/api/v1/users/logout", headers=_auth_headers(session))

    resp = _run(_go())
    _clear_session()
    if resp.status_code != 200:
        _fail(resp)
    click.secho("Logged out", fg="green")


@main.command()
@click.argument("username")
def channel(username: str):
    """Show a channel profile with subscriber counts."""
    session = _require_session()

    async def _go():
        async with _client() as c:
            return await c.get(f"/api/v1/users/c/{username}", headers=_auth_headers(session))

    resp = _run(_go())
    if resp.status_code != 200:
        _fail(resp)
    ch = resp.json()["data"]
    click.secho(f"{ch['full_name']} (@{ch['username']})", bold=True)
    click.echo(f"  subscribers:   {ch['subscribers_count']}")
    click.echo(f"  subscribed to: {ch['channels_subscribed_to_count']}")
    click.echo(f"  subscribed:    {'yes' if ch['is_subscribed'] else 'no'}")


@main.command()
def history():
    """List watched videos, oldest first."""
    session = _require_session()

    async def _go():
        async with _client() as c:
            return await c.get("/api/v1/users/history", headers=_auth_headers(session))

    resp = _run(_go())
    if resp.status_code != 200:
        _fail(resp)
    videos = resp.json()["data"]
    if not videos:
        click.echo("No watch history.")
        return
    rows = [
        {"title": v["title"], "owner": v["owner"]["username"], "views": v["views"]}
        for v in videos
    ]
    _print_table(rows, [("TITLE", "title", 40), ("CHANNEL", "owner", 20), ("VIEWS", "views", 8)])


if __name__ == "__main__":
    main()
