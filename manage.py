#!/usr/bin/env python3
"""Utility script for the song quiz server."""
import argparse
import os
import subprocess
import sys
from pathlib import Path

BASE_DIR = Path(__file__).parent
PID_FILE = BASE_DIR / ".server_pid"
LOG_FILE = BASE_DIR / ".server.log"
APP_PATH = "songquiz.web:create_app"


def _is_server_process(cmdline) -> bool:
    joined = ' '.join(cmdline or [])
    return 'uvicorn' in joined and APP_PATH in joined


def start(args):
    """Start the FastAPI server in background."""
    if PID_FILE.exists():
        print("Server appears to be running (pid file exists).")
        return
    cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        APP_PATH,
        "--factory",
        "--host",
        args.host,
        "--port",
        str(args.port),
    ]
    if args.reload:
        cmd.append("--reload")
        print("Starting server with auto-reload enabled...")
    else:
        print("Starting server in background...")

    with open(LOG_FILE, "w") as log_file:
        proc = subprocess.Popen(cmd, cwd=BASE_DIR, stdout=log_file, stderr=subprocess.STDOUT,
                                stdin=subprocess.DEVNULL)
    PID_FILE.write_text(str(proc.pid))
    print(f"Server started with PID {proc.pid}")
    print(f"Listening on http://{args.host}:{args.port}")
    print(f"Logs: {LOG_FILE}")


def stop(args):
    """Stop the background server."""
    import psutil

    stopped = False
    if PID_FILE.exists():
        pid = int(PID_FILE.read_text())
        print(f"Stopping server {pid} from PID file...")
        try:
            os.kill(pid, 15)
            stopped = True
            print("Server stopped.")
        except OSError as exc:
            print(f"Error stopping server from PID file: {exc}")
        PID_FILE.unlink(missing_ok=True)

    # Also look for stray uvicorn processes serving this app
    for proc in psutil.process_iter(['pid', 'name', 'cmdline']):
        try:
            if _is_server_process(proc.info.get('cmdline')):
                print(f"Found uvicorn process {proc.pid}, stopping...")
                proc.terminate()
                stopped = True
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            pass

    if not stopped:
        print("No server processes found.")


def status(args):
    """Show server status and running processes."""
    import psutil
    import requests

    if PID_FILE.exists():
        pid = int(PID_FILE.read_text())
        print(f"PID file exists: {pid}")
        try:
            proc = psutil.Process(pid)
            print(f"  Process {pid} is running: {proc.name()}")
        except psutil.NoSuchProcess:
            print(f"  Process {pid} is not running (stale PID file)")
    else:
        print("No PID file found")

    print("\nUvicorn processes:")
    found = False
    for proc in psutil.process_iter(['pid', 'name', 'cmdline']):
        try:
            cmdline = proc.info.get('cmdline')
            if _is_server_process(cmdline):
                found = True
                print(f"  PID {proc.pid}: {' '.join(cmdline[:5])}...")
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            pass
    if not found:
        print("  No uvicorn processes found")

    print(f"\nServer status (port {args.port}):")
    try:
        # Unknown round ids answer 404 quickly, which proves the server is up
        response = requests.get(f"http://{args.host}:{args.port}/status",
                                params={"id": "__probe__"}, timeout=2)
        if response.status_code in (200, 404):
            print("  Server is responding")
        else:
            print(f"  Server returned status {response.status_code}")
    except requests.exceptions.ConnectionError:
        print("  Server is not responding (connection refused)")
    except requests.exceptions.Timeout:
        print("  Server is not responding (timeout)")


def refresh(args):
    """Ask a running server to reload its curated song batch."""
    import requests

    try:
        response = requests.post(f"http://{args.host}:{args.port}/refreshCache",
                                 params={"lang": args.lang}, timeout=60)
    except requests.exceptions.RequestException as exc:
        print(f"Refresh failed: {exc}")
        sys.exit(1)
    if response.status_code != 200:
        print(f"Refresh failed ({response.status_code}): {response.text}")
        sys.exit(1)
    print(f"Loaded {response.json().get('songs_loaded', 0)} songs for {args.lang}")


def main():
    parser = argparse.ArgumentParser(description="Song quiz server management script")
    sub = parser.add_subparsers(dest="cmd")

    def _server_args(p, port_help="Server port (default: 8080)"):
        p.add_argument("--host", default="127.0.0.1", help="Server host (default: 127.0.0.1)")
        p.add_argument("--port", type=int, default=8080, help=port_help)

    p_start = sub.add_parser("start", help="Start web server")
    _server_args(p_start)
    p_start.add_argument("--reload", action="store_true",
                         help="Enable auto-reload on code changes (useful for development)")
    p_start.set_defaults(func=start)

    p_stop = sub.add_parser("stop", help="Stop web server")
    p_stop.set_defaults(func=stop)

    p_status = sub.add_parser("status", help="Show server status and running processes")
    _server_args(p_status, "Server port to check")
    p_status.set_defaults(func=status)

    p_refresh = sub.add_parser("refresh", help="Reload the curated song cache for a language")
    p_refresh.add_argument("--lang", required=True, help="Language, e.g. english")
    _server_args(p_refresh)
    p_refresh.set_defaults(func=refresh)

    p_help = sub.add_parser("help", help="Show help for commands")
    p_help.set_defaults(func=lambda args, p=parser: p.print_help())

    args = parser.parse_args()
    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
