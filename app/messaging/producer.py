import json
import logging
import os

import pika

logger = logging.getLogger(__name__)

EVENTS_ENABLED = os.getenv("EVENTS_ENABLED", "0").strip().lower() in {"1", "true", "yes"}
RABBITMQ_HOST = os.getenv("RABBITMQ_HOST", "rabbitmq")
EVENTS_EXCHANGE = os.getenv("EVENTS_EXCHANGE", "events")


class RabbitMQProducer:
    """
    Publishes order lifecycle events ('order.created', 'order.status_changed', ...)
    to a topic exchange. Each publish opens its own short-lived connection.
    """

    def __init__(self, host=RABBITMQ_HOST, exchange_name=EVENTS_EXCHANGE, enabled=EVENTS_ENABLED):
        self.host = host
        self.exchange_name = exchange_name
        self.enabled = enabled

    def _connect(self):
        connection = pika.BlockingConnection(
            pika.ConnectionParameters(
                host=self.host,
                heartbeat=600,
                blocked_connection_timeout=300
            )
        )
        channel = connection.channel()
        # Declare the exchange (durable ensures it survives restarts)
        channel.exchange_declare(exchange=self.exchange_name, exchange_type='topic', durable=True)
        return connection, channel

    def publish_event(self, event_data: dict, routing_key: str = "order.created"):
        if not self.enabled:
            logger.debug("Events disabled, not sending '%s'", routing_key)
            return

        connection, channel = self._connect()
        try:
            channel.basic_publish(
                exchange=self.exchange_name,
                routing_key=routing_key,
                body=json.dumps(event_data, default=str),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Make message persistent
                    content_type='application/json'
                )
            )
            logger.info(" [x] Sent event '%s': %s", routing_key, event_data)
        finally:
            connection.close()


producer = RabbitMQProducer()
