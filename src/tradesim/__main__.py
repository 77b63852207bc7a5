"""
Entry point for the trading simulator.

Usage:
    python -m tradesim
    tradesim  # if installed via pip
"""

import sys


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success).
    """
    import uvicorn

    from tradesim import __version__
    from tradesim.api.server import create_app
    from tradesim.config.settings import get_settings
    from tradesim.telemetry.logger import setup_logging

    # Print banner
    print(
        f"""
╔═══════════════════════════════════════════════════════════════╗
║     CRYPTO TRADING SIMULATOR v{__version__:<26}      ║
║                                                               ║
║     Live prices, paper trading, simulated bots & arbitrage    ║
╚═══════════════════════════════════════════════════════════════╝
    """
    )

    # Load settings
    try:
        settings = get_settings()
    except Exception as e:
        print(f"Configuration error: {e}")
        print("\nMake sure you have a .env file with:")
        print("  JWT_SECRET=a_long_random_secret")
        return 1

    uvloop_enabled = False
    if settings.use_uvloop:
        try:
            import uvloop

            uvloop.install()
            uvloop_enabled = True
        except ImportError:
            pass

    # Print configuration summary
    print("Configuration:")
    print(f"  Listen:         {settings.host}:{settings.port}")
    print(f"  Price source:   {settings.price_api_url}")
    print(f"  Fetch interval: {settings.fetch_interval_s:.0f}s (max {settings.max_fetch_interval_s:.0f}s)")
    print(f"  Cache window:   {settings.cache_duration_s:.0f}s")
    print(f"  Call budget:    {settings.max_calls_per_minute}/min")
    print(f"  Simulation:     every {settings.simulation_interval_s:.0f}s")
    print(f"  uvloop:         {'Enabled' if uvloop_enabled else 'Disabled'}")
    print()

    async_logger = setup_logging(settings.log_level, settings.log_file)

    try:
        uvicorn.run(
            create_app(settings),
            host=settings.host,
            port=settings.port,
            log_config=None,
        )
        return 0

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0

    except Exception as e:
        print(f"\nFatal error: {e}")
        import traceback

        traceback.print_exc()
        return 1

    finally:
        async_logger.stop()


if __name__ == "__main__":
    sys.exit(main())
