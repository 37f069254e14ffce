"""Entry point to run the appointment engine with its scheduler."""

import os
import subprocess
import sys
from pathlib import Path

# Load .env file FIRST before starting the server
from dotenv import load_dotenv
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)
print(f"✅ Loaded environment from: {env_path}")


def main():
    print("=" * 50)
    print("Starting Appointment Engine")
    print("=" * 50)
    print()

    port = os.getenv("PORT", "8000")
    cwd = os.path.dirname(os.path.abspath(__file__))

    # Single worker: the scheduler must not run twice
    server = subprocess.Popen(
        [
            sys.executable, "-m", "uvicorn", "appointment_engine.main:app",
            "--host", "0.0.0.0", "--port", port, "--workers", "1",
        ],
        cwd=cwd,
        env=os.environ.copy(),
    )

    print(f"- Health: http://localhost:{port}/health")
    print("Press Ctrl+C to stop...")

    try:
        server.wait()
    except KeyboardInterrupt:
        print()
        print("Shutting down...")
        server.terminate()
        server.wait()
        print("Service stopped.")


if __name__ == "__main__":
    main()
