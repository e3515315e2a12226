"""Adventure Engine: dev launcher. Starts the API server in watch mode."""

import argparse
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Adventure Engine dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Game storage directory (default: ./data)")
    parser.add_argument("--config", type=Path, default=None,
                        help="JSON file overriding engine tables")
    parser.add_argument("--seed", type=int, default=None,
                        help="Fixed RNG seed for reproducible runs")
    args = parser.parse_args()

    # Build env for the server so create_app() picks up the same settings
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())
    if args.config:
        env["ENGINE_CONFIG"] = str(args.config.resolve())
    if args.seed is not None:
        env["RNG_SEED"] = str(args.seed)

    print(f"Starting API on http://localhost:{PORT} ...")
    proc = subprocess.Popen(
        ["uvicorn", "adventure_engine.app:create_app", "--factory", "--reload",
         "--host", HOST, "--port", PORT],
        cwd=ROOT, env=env,
    )
    try:
        sys.exit(proc.wait())
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


if __name__ == "__main__":
    main()
