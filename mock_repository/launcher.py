"""
launcher.py
-----------
A CLI to manage the mock_repository daemon.

Uses Python subprocess to start it in the background and psutil to find
it again, so no PID file is needed. Every command prints one JSON line.
"""

import json
import logging
import os
import signal
import subprocess
import sys
import time
from typing import Optional

import httpx
import psutil
import typer
from rich import print as rich_print

from common.app_setup import print_and_log, print_error, setup_logging

logger = logging.getLogger(__name__)

DAEMON_MODULE = "mock_repository.daemon"

app = typer.Typer(add_completion=False, help="Manage the mock_repository daemon. If no port is passed to start, an automatic port will be selected. If no command is given, status is shown.")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    setup_logging(app_name="mock_repository_launcher", daemon=False,
                  logfile=os.environ.get("REPOCLIENT_LOGFILE"))
    if ctx.invoked_subcommand is None:
        try:
            ctx.invoke(status)
        finally:
            rich_print("[bold yellow]Tip:[/bold yellow] Use [green]--help[/green] to see all available commands.")


def _start_daemon(port: Optional[int] = None, catalog: Optional[str] = None) -> tuple[int, Optional[int]]:
    """Start the daemon, optionally with a specific port. Returns (pid, port)."""
    cmd = [sys.executable, '-m', DAEMON_MODULE, '--port', str(port or 0)]
    if catalog:
        cmd += ['--catalog', catalog]
    proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL, text=True, close_fds=True)
    selected_port = None
    assert proc.stdout is not None
    for _ in range(10):
        line = proc.stdout.readline()
        if not line:
            break
        try:
            msg = json.loads(line)
        except json.JSONDecodeError:
            continue
        if msg.get("event") in ("port_selected", "port_used"):
            selected_port = int(msg["port"])
            break
    time.sleep(0.5)
    if proc.poll() is not None:
        print_error(f"Failed to start daemon. Process exited with code {proc.returncode}.")
        raise typer.Exit(1)
    return proc.pid, selected_port or port


@app.command()
def start(port: Optional[int] = typer.Option(None, help="Port to start the daemon on (auto if not set)"),
          catalog: Optional[str] = typer.Option(None, help="YAML/JSON file with services to preload")):
    """Start the mock_repository daemon as a background process.
    If one is already running, report it instead (exit code 1).
    """
    try:
        daemon_pid = _find_daemon_pid()
        running_port = _get_listening_port_of_pid(daemon_pid)
        result = {"returncode": 1, "msg": "A mock_repository daemon is already running",
                  "pid": daemon_pid, "port": running_port or "unknown"}
    except psutil.NoSuchProcess:
        pid, used_port = _start_daemon(port, catalog)
        result = {"returncode": 0, "msg": "Started daemon", "pid": pid, "port": used_port}
    print(json.dumps(result))
    raise typer.Exit(result["returncode"])


@app.command()
def stop():
    """Stop the mock_repository daemon, via /shutdown first and SIGTERM as fallback."""
    try:
        pid = _find_daemon_pid()
    except psutil.NoSuchProcess:
        print_and_log(json.dumps({"returncode": 1, "msg": "Daemon not running."}))
        raise typer.Exit(1)
    port = _get_listening_port_of_pid(pid)
    if port:
        try:
            httpx.post(f"http://127.0.0.1:{port}/shutdown", timeout=2)
        except httpx.HTTPError as e:
            logger.warning(f"Graceful shutdown request failed: {e}")
    if _wait_for_exit(pid, 2.0):
        print_and_log(json.dumps({"returncode": 0, "msg": f"Stopped daemon (PID {pid}) via /shutdown"}))
        return
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        pass
    if _wait_for_exit(pid, 1.0):
        print_and_log(json.dumps({"returncode": 0, "msg": f"Stopped daemon (PID {pid}) via SIGTERM"}))
        return
    print_and_log(json.dumps({"returncode": 1, "msg": f"Failed to stop daemon (PID {pid})"}))
    raise typer.Exit(1)


@app.command()
def kill():
    """Forcefully kill the mock_repository daemon."""
    try:
        pid = _find_daemon_pid()
    except psutil.NoSuchProcess:
        print_and_log(json.dumps({"returncode": 1, "msg": "Daemon not running."}))
        raise typer.Exit(1)
    os.kill(pid, signal.SIGKILL)
    if _wait_for_exit(pid, 1.0):
        print_and_log(json.dumps({"returncode": 0, "msg": f"Killed daemon with PID {pid}"}))
    else:
        print_and_log(json.dumps({"returncode": 1, "msg": f"Failed to kill daemon with PID {pid}."}))
        raise typer.Exit(1)


@app.command()
def status():
    """Show the status of the mock_repository daemon by finding its process and querying the REST API."""
    result = {
        "returncode": 1,
        "msg": "Daemon not running.",
        "running": False,
        "pid": None,
        "port": None,
        "api_status": None,
    }
    try:
        pid = _find_daemon_pid()
    except psutil.NoSuchProcess:
        print_and_log(json.dumps(result))
        return
    port = _get_listening_port_of_pid(pid)
    result["pid"] = pid
    result["port"] = port or "unknown"
    if port:
        try:
            resp = httpx.get(f"http://127.0.0.1:{port}/status", timeout=2)
            if resp.status_code == 200:
                result.update(api_status=resp.json(), msg=f"Daemon running with PID {pid}", running=True, returncode=0)
            else:
                result.update(api_status={"error": resp.text}, msg=f"Daemon running with PID {pid}, but REST API error")
        except httpx.HTTPError as e:
            result.update(api_status={"error": str(e)}, msg=f"Error checking daemon status: {e}")
    print_and_log(json.dumps(result))


def _pid_running(pid: int) -> bool:
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False


def _wait_for_exit(pid: int, timeout: float) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not _pid_running(pid):
            return True
        time.sleep(0.1)
    return not _pid_running(pid)


def _find_daemon_pid() -> int:
    for proc in psutil.process_iter(['pid', 'name', 'cmdline']):
        try:
            if proc.info['cmdline'] and DAEMON_MODULE in ' '.join(proc.info['cmdline']):
                return proc.pid
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    logger.debug("Daemon not running.")
    raise psutil.NoSuchProcess(0, msg="Daemon not running.")


def _get_listening_port_of_pid(pid: Optional[int]) -> Optional[int]:
    try:
        proc = psutil.Process(pid)
        for c in proc.net_connections(kind='inet'):
            if c.status == psutil.CONN_LISTEN:
                return c.laddr.port
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        pass
    return None


if __name__ == "__main__":
    app()
