"""
notifications.py — Order-created Events over RabbitMQ

Publishes a persistent JSON message per created order to the
`orders.created` queue. Email and WhatsApp senders consume that queue
independently; nothing here waits for them.
"""

import json
import logging
import os
import time

import pika

from .models import OrderCreatedEvent

RABBITMQ_HOST = os.environ.get("RABBITMQ_HOST", "localhost")
RABBITMQ_USER = os.environ.get("RABBITMQ_USER", "guest")
RABBITMQ_PASSWORD = os.environ.get("RABBITMQ_PASSWORD", "guest")
ORDERS_CREATED_QUEUE = "orders.created"

log = logging.getLogger(__name__)


class NotificationPublisher:
    """
    Publishes order events and manages the MQ connection.
    The connection is opened lazily on first publish.
    """

    def __init__(self, host: str = RABBITMQ_HOST, queue: str = ORDERS_CREATED_QUEUE):
        self.host = host
        self.queue = queue
        self.connection = None
        self.channel = None

    def _connect(self):
        """
        Establishes the RabbitMQ connection and declares the queue.
        Raises:
            pika.exceptions.AMQPConnectionError: If the broker is unreachable.
        """
        credentials = pika.PlainCredentials(RABBITMQ_USER, RABBITMQ_PASSWORD)
        self.connection = pika.BlockingConnection(
            pika.ConnectionParameters(host=self.host, credentials=credentials, heartbeat=60)
        )
        self.channel = self.connection.channel()
        self.channel.queue_declare(queue=self.queue, durable=True)
        log.info("Notification publisher connected to RabbitMQ.")

    def publish_order_created(self, event: OrderCreatedEvent):
        """
        Sends one order-created message.
        Raises:
            pika.exceptions.AMQPError: If publishing fails.
        """
        body = {
            "eventType": "order.created",
            "eventTimestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            **event.model_dump(),
        }
        if not self.connection or self.connection.is_closed:
            self._connect()

        self.channel.basic_publish(
            exchange='',
            routing_key=self.queue,
            body=json.dumps(body, ensure_ascii=False),
            properties=pika.BasicProperties(delivery_mode=2, content_type="application/json"),
        )
        log.info(f"[Order: {event.order_number}] Order-created event published.")

    def close(self):
        if self.connection and self.connection.is_open:
            self.connection.close()


def notify_order_created(event: OrderCreatedEvent, publisher: NotificationPublisher = None):
    """
    Fire-and-forget delivery used as a background task.
    Errors are logged; the order is already final.
    """
    publisher = publisher or NotificationPublisher()
    try:
        publisher.publish_order_created(event)
    except pika.exceptions.AMQPError as e:
        log.error(f"[Order: {event.order_number}] Order-created event could not be published: {e!r}")
    finally:
        publisher.close()
