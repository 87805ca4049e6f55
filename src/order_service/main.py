"""
Order Service - Main Entry Point

USAGE:
    python -m src.order_service.main [options]

OPTIONS:
    --log-level        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    --log-format       Log format (json or text)
    --port             HTTP port for the lookup API
    --cache-capacity   Maximum number of cached orders

STARTUP SEQUENCE:
1. Load configuration from environment (.env supported)
2. Connect to PostgreSQL (exit 1 if unreachable), ensure tables exist
3. Restore the cache from PostgreSQL (exit 1 on failure)
4. Build the HTTP app, mounting the web front end when enabled (exit 1 if
   the directory is missing), then create the Kafka consumer (exit 1 on failure)
5. Start the consumer loop on a background thread
6. Serve the lookup API (and the browser lookup page at /) with uvicorn on
   the main thread

GRACEFUL SHUTDOWN:
- uvicorn handles SIGINT (Ctrl+C) and SIGTERM (Docker stop)
- When the server returns, the shared shutdown event is set: the consumer
  finishes its current poll, aborts any retry backoff wait, closes the
  Kafka consumer and exits
- Database connections are closed last
- If the consumer loop dies on its own, the server is asked to exit too
"""

import argparse
import logging
import sys
import threading
from typing import Optional

import uvicorn

from src.order_service.api import DEFAULT_WEB_DIR, create_app
from src.order_service.cache import OrderCache
from src.order_service.config import load_config
from src.order_service.consumer import OrderConsumer
from src.order_service.database import OrderRepository, init_database
from src.order_service.query import OrderQueryService
from src.shared.logger import setup_logger

CONSUMER_JOIN_TIMEOUT_S = 30.0


# ==============================================================================
# CLI ARGUMENT PARSING
# ==============================================================================


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Order Service: Kafka ingestion + cached order lookup API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default settings
  python -m src.order_service.main

  # Debug logging in plain text
  python -m src.order_service.main --log-level DEBUG --log-format text

Environment Variables:
  KAFKA_BOOTSTRAP_SERVERS    Kafka broker addresses (default: localhost:9092)
  KAFKA_TOPIC_ORDERS         Topic to consume (default: orders)
  CONSUMER_GROUP_ID          Consumer group (default: orders_group)
  DATABASE_URL               Full database URL (overrides POSTGRES_*)
  POSTGRES_HOST              Database host (default: localhost)
  POSTGRES_PORT              Database port (default: 5432)
  POSTGRES_DB                Database name (default: orders)
  CACHE_CAPACITY             Cached orders (default: 1000)
  HTTP_PORT                  Lookup API port (default: 8082)
  WEB_ENABLED                Serve the browser lookup page (default: true)
  WEB_DIR                    Front end directory (default: bundled page)
  LOG_LEVEL                  Logging level (default: INFO)
  LOG_FORMAT                 Log format: json or text (default: json)
        """,
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (overrides LOG_LEVEL env var)",
    )

    parser.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Log output format (overrides LOG_FORMAT env var)",
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Lookup API port (overrides HTTP_PORT env var)",
    )

    parser.add_argument(
        "--cache-capacity",
        type=int,
        help="Maximum cached orders (overrides CACHE_CAPACITY env var)",
    )

    return parser.parse_args(argv)


# ==============================================================================
# CONSUMER THREAD
# ==============================================================================


def _run_consumer(consumer: OrderConsumer, server: uvicorn.Server) -> None:
    logger = logging.getLogger(__name__)
    try:
        consumer.start()
    except Exception:
        logger.error("Consumer loop terminated with an error", exc_info=True)
    finally:
        # Lookups do not outlive ingestion
        if not server.should_exit:
            logger.warning("Consumer loop exited, stopping HTTP server")
            server.should_exit = True


# ==============================================================================
# MAIN FUNCTION
# ==============================================================================


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the order service.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    args = parse_args(argv)

    try:
        config = load_config()
    except Exception as e:
        print(f"ERROR: Failed to load configuration: {e}", file=sys.stderr)
        return 1

    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format
    if args.port:
        config.http_port = args.port
    if args.cache_capacity is not None:
        config.cache_capacity = args.cache_capacity

    # Configure the whole "src" logger tree so module loggers share the handler
    setup_logger(
        name="src",
        service_name="order-service",
        log_level=config.log_level,
        log_format=config.log_format,
    )
    logger = logging.getLogger(__name__)

    logger.info(
        "Starting Order Service",
        extra={
            "kafka_bootstrap_servers": config.kafka_bootstrap_servers,
            "kafka_topic": config.kafka_topic_orders,
            "consumer_group": config.consumer_group_id,
            "database_host": config.postgres_host,
            "database_name": config.postgres_db,
            "cache_capacity": config.cache_capacity,
            "http_port": config.http_port,
        },
    )

    try:
        db_manager = init_database(config)
    except Exception:
        logger.error("Failed to initialize database", exc_info=True)
        return 1

    repository = OrderRepository(db_manager)
    shutdown_event = threading.Event()

    try:
        if config.db_create_schema:
            repository.create_schema()

        cache = OrderCache(config.cache_capacity)
        query_service = OrderQueryService(repository, cache, config.lookup_timeout_ms)
        query_service.warm_up()
    except Exception:
        logger.error("Failed to restore cache from database", exc_info=True)
        db_manager.close()
        return 1

    web_dir = (config.web_dir or DEFAULT_WEB_DIR) if config.web_enabled else None
    try:
        app = create_app(query_service, db_manager, web_dir)
    except RuntimeError:
        # StaticFiles rejects a missing directory
        logger.error(
            "Failed to set up the web front end",
            exc_info=True,
            extra={"web_dir": str(web_dir)},
        )
        db_manager.close()
        return 1

    try:
        consumer = OrderConsumer(config, repository, cache, shutdown_event)
    except Exception:
        logger.error("Failed to create Kafka consumer", exc_info=True)
        db_manager.close()
        return 1

    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.http_host,
            port=config.http_port,
            log_level=config.log_level.lower(),
        )
    )

    consumer_thread = threading.Thread(
        target=_run_consumer,
        args=(consumer, server),
        name="order-consumer",
        daemon=True,
    )
    consumer_thread.start()

    exit_code = 0
    try:
        logger.info("HTTP server starting", extra={"port": config.http_port})
        server.run()
    except Exception:
        logger.error("Fatal error in HTTP server", exc_info=True)
        exit_code = 1
    finally:
        logger.info("Shutting down...")
        shutdown_event.set()
        consumer_thread.join(timeout=CONSUMER_JOIN_TIMEOUT_S)
        if consumer_thread.is_alive():
            logger.warning("Consumer thread did not stop in time")
        db_manager.close()

    logger.info("Order Service stopped")
    return exit_code


# ==============================================================================
# ENTRY POINT
# ==============================================================================

if __name__ == "__main__":
    sys.exit(main())
