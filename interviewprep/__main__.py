"""
Backend startup: python -m interviewprep
"""
import os
import sys


def main() -> None:
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    print(f"[Backend] Starting interview prep backend on http://localhost:{port}")
    try:
        uvicorn.run(
            "interviewprep.main:app",
            host=os.getenv("HOST", "0.0.0.0"),
            port=port,
            reload=False,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\n[Backend] Shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
