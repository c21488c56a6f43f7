#!/usr/bin/env python3
"""
Quote Bridge - API Launcher
Starts the FastAPI server with proper path handling for the src/ layout
"""
import sys
from pathlib import Path

# Get project root directory
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT / 'src'))

# Fix encoding for Windows
if sys.stdout.encoding != 'utf-8':
    import io
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8', errors='replace')


def main():
    """Main entry point"""
    try:
        # Import after path is set
        import uvicorn
        from quote_bridge import quote_config as cfg
        from quote_bridge.quote_logger import get_logger
        from api.main import create_app

        print("\n" + "="*80)
        print("QUOTE BRIDGE API")
        print("="*80)
        print(f"Project Root: {PROJECT_ROOT}")
        print("="*80 + "\n")

        cfg.validate_config()
        print("[OK] Configuration validated")

        logger = get_logger(log_level=cfg.LOG_LEVEL)
        logger.info(
            f"REST API running on http://{cfg.API_HOST}:{cfg.API_PORT} (Swagger: /docs)",
            component="Main",
        )
        uvicorn.run(create_app(), host=cfg.API_HOST, port=cfg.API_PORT, log_level="info")

    except ValueError as e:
        print(f"\n[FAIL] Failed to start server: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
