"""
events.py — Fan-Out Event Emitter and MQTT Publisher
======================================================

Every ingested reading is broadcast to subscribers as

    {"type": "reading", "payload": <enriched reading>}

and anomalous readings additionally as

    {"type": "anomaly", "payload": <enriched reading>}

Publishing never blocks ingestion: each subscriber owns a bounded queue
drained by its own daemon thread.  When a subscriber falls behind and
its queue fills up, new messages for it are dropped (best-effort
delivery, no replay buffer).  A subscriber that raises is logged and
keeps receiving subsequent messages.

MqttPublisher is the production subscriber: it forwards messages to the
broker so the dashboard gateway and mobile app receive live readings.
"""

import json
import logging
import queue
import threading

import paho.mqtt.client as mqtt

from . import config

logger = logging.getLogger("pharma_ml.events")

READING = "reading"
ANOMALY = "anomaly"

_STOP = object()


def build_messages(enriched) -> list:
    """Messages for one enriched reading, in publish order."""
    payload = enriched.to_dict()
    messages = [{"type": READING, "payload": payload}]
    if enriched.is_anomaly:
        messages.append({"type": ANOMALY, "payload": payload})
    return messages


class Subscription:
    """
    One subscriber: callback, bounded queue and worker thread.

    Attributes:
        name (str): Label used in logs.
        dropped (int): Messages discarded because the queue was full.
        delivered (int): Messages handed to the callback.
    """

    def __init__(self, callback, name: str, maxsize: int):
        self.callback = callback
        self.name = name
        self.queue = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self.delivered = 0
        self._thread = threading.Thread(target=self._run, name=f"subscriber-{name}",
                                        daemon=True)
        self._thread.start()

    def offer(self, message) -> bool:
        try:
            self.queue.put_nowait(message)
            return True
        except queue.Full:
            self.dropped += 1
            if self.dropped == 1:
                logger.warning(f"Subscriber '{self.name}' is falling behind, "
                               f"dropping messages")
            else:
                logger.debug(f"Subscriber '{self.name}' dropped message "
                             f"({self.dropped} total)")
            return False

    def _run(self) -> None:
        while True:
            message = self.queue.get()
            try:
                if message is _STOP:
                    return
                self.callback(message)
                self.delivered += 1
            except Exception as e:
                logger.error(f"Subscriber '{self.name}' failed: {e}", exc_info=True)
            finally:
                self.queue.task_done()

    def stop(self, timeout: float = None) -> None:
        # Blocking put: the stop marker must not be dropped.
        self.queue.put(_STOP)
        self._thread.join(timeout)


class EventEmitter:
    """
    Non-blocking fan-out to zero or more subscribers.

    Usage:
        emitter = EventEmitter()
        emitter.subscribe(print, name="console")
        emitter.publish({"type": "reading", "payload": {...}})
    """

    def __init__(self, queue_size: int = None):
        """
        Args:
            queue_size: Per-subscriber queue bound.
                Defaults to config.SUBSCRIBER_QUEUE_SIZE.
        """
        self.queue_size = (config.SUBSCRIBER_QUEUE_SIZE if queue_size is None
                           else queue_size)
        self._subscriptions = []
        self._lock = threading.Lock()

    def subscribe(self, callback, name: str = None, queue_size: int = None) -> Subscription:
        sub = Subscription(callback, name or getattr(callback, "__name__", "subscriber"),
                           self.queue_size if queue_size is None else queue_size)
        with self._lock:
            self._subscriptions = self._subscriptions + [sub]
        logger.info(f"Subscriber '{sub.name}' registered")
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subscriptions = [s for s in self._subscriptions if s is not sub]
        sub.stop()
        logger.info(f"Subscriber '{sub.name}' removed")

    @property
    def subscriptions(self) -> list:
        return list(self._subscriptions)

    def publish(self, message) -> int:
        """
        Queue a message for every subscriber.

        Returns:
            Number of subscribers the message was queued for.
        """
        queued = 0
        for sub in self._subscriptions:
            if sub.offer(message):
                queued += 1
        return queued

    def publish_reading(self, enriched) -> None:
        for message in build_messages(enriched):
            self.publish(message)

    def flush(self) -> None:
        """Block until every queued message has been handled."""
        for sub in self._subscriptions:
            sub.queue.join()

    def close(self) -> None:
        with self._lock:
            subs, self._subscriptions = self._subscriptions, []
        for sub in subs:
            sub.stop(timeout=5.0)


class MqttPublisher:
    """
    Subscriber that forwards engine messages to an MQTT broker.

    Reading messages go to config.MQTT_READING_TOPIC, anomaly messages
    to config.MQTT_ANOMALY_TOPIC, JSON-encoded with QoS 1.
    """

    def __init__(self, client=None, host: str = None, port: int = None,
                 reading_topic: str = None, anomaly_topic: str = None, qos: int = 1):
        """
        Args:
            client: A connected paho client; if None, connect() creates one.
            host, port: Broker address. Default to config values.
        """
        self.client = client
        self.host = config.MQTT_BROKER_HOST if host is None else host
        self.port = config.MQTT_BROKER_PORT if port is None else port
        self.topics = {
            READING: config.MQTT_READING_TOPIC if reading_topic is None else reading_topic,
            ANOMALY: config.MQTT_ANOMALY_TOPIC if anomaly_topic is None else anomaly_topic,
        }
        self.qos = qos
        self.__name__ = "mqtt"

    def connect(self) -> "MqttPublisher":
        """Create a paho client, connect to the broker and start its network loop."""
        client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2,
                             client_id=config.MQTT_CLIENT_ID)
        client.connect(self.host, self.port, 60)
        client.loop_start()
        self.client = client
        logger.info(f"MQTT client connected to {self.host}:{self.port}")
        return self

    def __call__(self, message: dict) -> None:
        if self.client is None:
            raise RuntimeError("MQTT publisher is not connected. Call connect() first.")
        topic = self.topics[message["type"]]
        self.client.publish(topic, json.dumps(message), qos=self.qos)
        if message["type"] == ANOMALY:
            logger.info(f"Anomaly published: topic={topic} "
                        f"batch={message['payload'].get('batchId')}")

    def disconnect(self) -> None:
        if self.client is not None:
            self.client.loop_stop()
            self.client.disconnect()
            self.client = None
            logger.info("MQTT client disconnected")
