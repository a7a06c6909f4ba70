#!/usr/bin/env python
"""
Run the Streamlit sale price calculator (Kalkulator Harga Jual).

The UI talks to the store directly, so the PRICE_CALC_* variables that
configure the API (store backend, backup path, assistant) apply here too.

Usage:
    python scripts/run_app.py [--port 8501] [--headless]
"""
import argparse
import os
import subprocess
import sys
from pathlib import Path


def main():
    parser = argparse.ArgumentParser(description="Start the price calculator UI")
    parser.add_argument('--port', default="8501")
    parser.add_argument('--headless', action='store_true', help="Do not open a browser")
    args = parser.parse_args()

    project_root = Path(__file__).parent.parent
    ui_path = project_root / 'src' / 'price_calculator' / 'ui' / 'app_streamlit.py'

    if not ui_path.exists():
        print(f"ERROR: UI module not found at {ui_path}")
        sys.exit(1)

    # Ensure src is in python path
    env = os.environ.copy()
    src_path = str(project_root / "src")
    if "PYTHONPATH" in env:
        env["PYTHONPATH"] = f"{src_path}{os.pathsep}{env['PYTHONPATH']}"
    else:
        env["PYTHONPATH"] = src_path

    cmd = [
        sys.executable, '-m', 'streamlit', 'run', str(ui_path),
        '--server.port', str(args.port),
    ]
    if args.headless:
        cmd += ['--server.headless', 'true']

    store = env.get("PRICE_CALC_STORE", "local")
    print(f"Starting Kalkulator Harga Jual on port {args.port} (store={store})...")
    try:
        subprocess.run(cmd, cwd=str(project_root), env=env)
    except KeyboardInterrupt:
        print("\nApplication stopped.")


if __name__ == "__main__":
    main()
