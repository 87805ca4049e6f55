"""
Kafka Order Ingestion Pipeline

This module implements the consumer loop that reads order change events from
Kafka, persists them to PostgreSQL and only then publishes them to the
in-memory cache.

PER-MESSAGE LIFECYCLE:
┌─────────────────────────────────────────────────────────────────────────┐
│  1. Poll one message (shutdown flag checked before every poll)          │
│  2. Decode JSON → Order          failure → log, commit, next message    │
│  3. Validate order_uid           failure → log, commit, next message    │
│  4. Persist with retry           exhausted / cancelled → no commit      │
│  5. cache.set(order_uid, order)  only after the store accepted it       │
│  6. Commit the message offset                                           │
└─────────────────────────────────────────────────────────────────────────┘

AT-LEAST-ONCE DELIVERY:
- The offset is committed only after the store write and the cache update
- A crash (or shutdown) before the commit means the message is redelivered
- save_order is a full upsert keyed by order_uid, so a redelivered message
  converges to the same stored state

RETRY POLICY:
- Up to persist_max_attempts (5) store attempts per message
- Backoff between attempts starts at retry_backoff_ms (1s) and doubles:
  1s, 2s, 4s, 8s
- Each wait is shutdown_event.wait(...), so shutdown interrupts it at once
- Messages are handled one at a time: a long retry sequence delays every
  later message of the assigned partitions

ORDERING:
- No version or timestamp comparison: the last successful write for an
  order_uid wins, even if it carried older data
"""

import logging
import threading
import time
from typing import Optional

from confluent_kafka import Consumer, KafkaError, KafkaException, Message
from sqlalchemy.exc import SQLAlchemyError

from src.order_service.cache import OrderCache
from src.order_service.config import ServiceConfig
from src.order_service.database import OrderRepository
from src.order_service.errors import (
    MalformedOrderError,
    PersistCancelledError,
    RetriesExhaustedError,
)
from src.order_service.schemas import Order, decode_order, validate_order
from src.shared.logger import CorrelationAdapter

# Broker errors after which polling cannot make progress
FATAL_KAFKA_ERRORS = (
    KafkaError._ALL_BROKERS_DOWN,
    KafkaError._AUTHENTICATION,
    KafkaError.TOPIC_AUTHORIZATION_FAILED,
    KafkaError.GROUP_AUTHORIZATION_FAILED,
)

# ==============================================================================
# KAFKA CONSUMER
# ==============================================================================


class OrderConsumer:
    """
    Kafka consumer feeding the order store and the order cache.

    Attributes:
        config: Service configuration
        repository: Durable order store
        cache: Shared in-memory order cache
        shutdown_event: Process-wide cancellation flag
        consumer: Confluent Kafka consumer instance
        messages_processed: Orders persisted, cached and committed
        messages_failed: Malformed messages dropped (committed)
        messages_unacknowledged: Messages left for redelivery
    """

    def __init__(
        self,
        config: ServiceConfig,
        repository: OrderRepository,
        cache: OrderCache,
        shutdown_event: Optional[threading.Event] = None,
        kafka_consumer: Optional[Consumer] = None,
    ):
        """
        Initialize the consumer and subscribe to the orders topic.

        Args:
            config: Service configuration
            repository: Order repository used for persistence
            cache: Cache updated after every successful persist
            shutdown_event: Shared cancellation flag (a new one if omitted)
            kafka_consumer: Pre-built consumer (a new one from config if omitted)
        """
        self.config = config
        self.repository = repository
        self.cache = cache
        self.shutdown_event = shutdown_event or threading.Event()
        self.logger = logging.getLogger(__name__)

        self.messages_processed = 0
        self.messages_failed = 0
        self.messages_unacknowledged = 0

        self.consumer = kafka_consumer or self._create_consumer()
        self.consumer.subscribe([config.kafka_topic_orders])

        self.logger.info(
            "Order consumer initialized",
            extra={
                "topic": config.kafka_topic_orders,
                "group_id": config.consumer_group_id,
                "bootstrap_servers": config.kafka_bootstrap_servers,
                "max_attempts": config.persist_max_attempts,
            },
        )

    def _create_consumer(self) -> Consumer:
        kafka_config = self.config.get_kafka_config()
        self.logger.debug("Creating Kafka consumer", extra={"config": kafka_config})
        return Consumer(kafka_config)

    @property
    def running(self) -> bool:
        return not self.shutdown_event.is_set()

    def start(self) -> None:
        """
        Run the consumer loop until shutdown is requested.

        The Kafka consumer is closed when the loop exits, whatever the reason.
        """
        self.logger.info("Starting consumer loop...")

        try:
            while not self.shutdown_event.is_set():
                msg = self.consumer.poll(timeout=self.config.poll_timeout_s)

                if msg is None:
                    continue

                if msg.error():
                    self._handle_kafka_error(msg)
                    continue

                self._process_message(msg)

        except Exception:
            self.logger.error("Fatal error in consumer loop", exc_info=True)
            raise
        finally:
            self._shutdown()

    def _process_message(self, msg: Message) -> None:
        """
        Take one message through decode, validate, persist, cache, commit.

        Only malformed input and fully handled orders are committed. Anything
        that fails after validation is left unacknowledged for redelivery.
        """
        start_time = time.time()

        try:
            order = decode_order(msg.value())
            validate_order(order)
        except MalformedOrderError as e:
            self.messages_failed += 1
            self.logger.error(
                "Dropping malformed order message",
                extra={
                    "error": e.message,
                    "partition": msg.partition(),
                    "offset": msg.offset(),
                },
            )
            self._commit(msg)
            return

        order_logger = CorrelationAdapter(self.logger, {"correlation_id": order.order_uid})
        order_logger.debug(
            "Processing message",
            extra={"partition": msg.partition(), "offset": msg.offset()},
        )

        try:
            attempts = self._save_order_with_retry(order, order_logger)
        except PersistCancelledError as e:
            self.messages_unacknowledged += 1
            order_logger.warning(
                "Shutdown during persistence retry, message left for redelivery",
                extra={"attempt": e.attempt, "offset": msg.offset()},
            )
            return
        except RetriesExhaustedError as e:
            self.messages_unacknowledged += 1
            order_logger.critical(
                "Order could not be persisted, message NOT committed",
                extra={
                    "attempts": e.attempts,
                    "error": str(e.last_error),
                    "partition": msg.partition(),
                    "offset": msg.offset(),
                },
            )
            return
        except Exception:
            self.messages_unacknowledged += 1
            order_logger.error(
                "Unexpected error persisting order, message NOT committed",
                exc_info=True,
                extra={"offset": msg.offset()},
            )
            return

        # Durable now; safe to expose to readers
        self.cache.set(order.order_uid, order)
        self._commit(msg)

        self.messages_processed += 1
        order_logger.info(
            "Order persisted and cached",
            extra={
                "attempts": attempts,
                "items": len(order.items),
                "partition": msg.partition(),
                "offset": msg.offset(),
                "processing_time_ms": round((time.time() - start_time) * 1000, 2),
                "messages_processed": self.messages_processed,
            },
        )

    def _save_order_with_retry(self, order: Order, logger: CorrelationAdapter) -> int:
        """
        Persist an order, retrying store failures with exponential backoff.

        Returns:
            Number of attempts used

        Raises:
            PersistCancelledError: shutdown requested during a backoff wait
            RetriesExhaustedError: every attempt failed
        """
        max_attempts = self.config.persist_max_attempts
        backoff_s = self.config.retry_backoff_ms / 1000
        timeout_ms = self.config.persist_timeout_ms or None
        last_error: Optional[SQLAlchemyError] = None

        for attempt in range(1, max_attempts + 1):
            try:
                self.repository.save_order(order, timeout_ms=timeout_ms)
                return attempt
            except SQLAlchemyError as e:
                last_error = e
                logger.warning(
                    f"Persist attempt {attempt}/{max_attempts} failed",
                    extra={"attempt": attempt, "error_type": type(e).__name__},
                )

            if attempt == max_attempts:
                break

            if self.shutdown_event.wait(backoff_s):
                raise PersistCancelledError(order.order_uid, attempt)
            backoff_s *= 2

        raise RetriesExhaustedError(order.order_uid, max_attempts, last_error)

    def _commit(self, msg: Message) -> None:
        try:
            self.consumer.commit(message=msg, asynchronous=False)
        except KafkaException:
            self.logger.error(
                "Failed to commit offset",
                exc_info=True,
                extra={"partition": msg.partition(), "offset": msg.offset()},
            )

    def _handle_kafka_error(self, msg: Message) -> None:
        """Log broker errors; stop the loop on errors it cannot recover from."""
        error = msg.error()

        if error.code() == KafkaError._PARTITION_EOF:
            self.logger.debug(
                "Reached end of partition",
                extra={"partition": msg.partition(), "offset": msg.offset()},
            )
            return

        self.logger.error(
            f"Kafka error: {error.str()}",
            extra={"error_code": error.code(), "error_name": error.name()},
        )

        if error.fatal() or error.code() in FATAL_KAFKA_ERRORS:
            self.logger.critical("Fatal Kafka error, shutting down")
            self.stop()

    def stop(self) -> None:
        """Request the loop to exit after the current poll or message."""
        self.logger.info("Stopping consumer...")
        self.shutdown_event.set()

    def _shutdown(self) -> None:
        self.logger.info(
            "Consumer shutting down",
            extra={
                "messages_processed": self.messages_processed,
                "messages_failed": self.messages_failed,
                "messages_unacknowledged": self.messages_unacknowledged,
            },
        )

        try:
            self.consumer.close()
            self.logger.info("Kafka consumer closed")
        except KafkaException:
            self.logger.error("Error closing Kafka consumer", exc_info=True)
