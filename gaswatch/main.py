#!/usr/bin/env python3
"""
GasWatch — Main entry point.
Builds the services, then serves the dashboard API; the poller and,
in simulation mode, the simulated board run inside the server lifespan.

  GASWATCH_SIM=1 gaswatch     → no Firebase, synthetic readings
"""
import logging
import sys

# Configure logging before importing modules
logging.basicConfig(
    level  = logging.INFO,
    format = "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt= "%H:%M:%S",
)
log = logging.getLogger("main")


def main():
    log.info("GasWatch starting...")

    import uvicorn
    from gaswatch.config import SERVER, DETECTION, SIM_MODE
    from gaswatch.server import create_app
    from gaswatch.services import build_services

    services = build_services()
    log.info(f"Threshold {DETECTION['gas_threshold']:g}, "
             f"cooldown {DETECTION['cooldown_sec']:g}s, "
             f"remote={'simulated' if SIM_MODE else 'firebase'}")
    log.info(f"{len(services.log_store)} stored log entries")

    app = create_app(services)
    try:
        uvicorn.run(app, host=SERVER["host"], port=SERVER["port"], log_level="warning")
    except KeyboardInterrupt:
        log.info("Shutting down (KeyboardInterrupt)")
    finally:
        log.info("GasWatch stopped.")
        sys.exit(0)


if __name__ == "__main__":
    main()
