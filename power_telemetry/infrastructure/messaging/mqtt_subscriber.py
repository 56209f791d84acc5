"""
MQTT subscriber for the power meter.

Topic Structure:
    iot/power           - Meter publishes JSON readings
    iot/power/control   - System publishes {"status": "on" | "off"}
    iot/power/reboot    - System publishes {"command": "reboot"}
"""
import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

import paho.mqtt.client as mqtt

from ...config import MQTTSettings
from ...domain.exceptions import (
    TransientIOError,
    TransportNotConnected,
    ValidationException,
)

log = logging.getLogger(__name__)


# Receives each decoded payload; called on the paho network thread
MessageHandler = Callable[[Any], None]


class MQTTSubscriber:
    """
    paho-mqtt client feeding decoded meter payloads to a handler.

    The network loop runs in paho's background thread (loop_start), which
    also handles reconnects. The handler is invoked on that thread, so it
    must be thread-safe and must not block.
    """

    def __init__(self, mqtt_settings: MQTTSettings, handler: MessageHandler):
        self.config = mqtt_settings
        self._handler = handler

        # MQTT client (created on connect)
        self.client: Optional[mqtt.Client] = None
        self._connected = False
        self._connection_error: Optional[str] = None

        # Event loop for the connection future
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connection_future: Optional[asyncio.Future] = None

        # Stats
        self._messages_received = 0
        self._messages_dropped = 0

    # ==================== Connection Management ====================

    async def connect(self) -> bool:
        """
        Connect to the broker and subscribe to the data topic.

        Returns:
            True once connected. False if the broker did not answer within
            connect_timeout; paho keeps retrying in the background.
        """
        if self._connected:
            log.debug("MQTT subscriber already connected")
            return True

        self._loop = asyncio.get_running_loop()

        self.client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.config.client_id,
        )

        if self.config.username:
            self.client.username_pw_set(self.config.username, self.config.password)

        self.client.reconnect_delay_set(min_delay=1, max_delay=self.config.reconnect_delay)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self._connection_future = self._loop.create_future()

        log.info(f"Connecting to MQTT broker at {self.config.broker_host}:{self.config.broker_port}")
        self.client.connect_async(
            self.config.broker_host,
            self.config.broker_port,
            keepalive=self.config.keepalive,
        )

        # Start the MQTT network loop in a background thread
        self.client.loop_start()

        try:
            await asyncio.wait_for(
                asyncio.shield(self._connection_future),
                timeout=self.config.connect_timeout,
            )
        except asyncio.TimeoutError:
            log.warning(
                f"MQTT broker {self.config.broker_host}:{self.config.broker_port} "
                f"not reachable after {self.config.connect_timeout}s; retrying in background"
            )
            return False
        except RuntimeError as e:
            log.error(f"MQTT connection failed: {e}")
            return False

        return True

    async def close(self) -> None:
        """Disconnect from the MQTT broker."""
        if self.client:
            try:
                self.client.disconnect()
                self.client.loop_stop()
                log.info("MQTT subscriber disconnected")
            except Exception as e:
                log.warning(f"Error during MQTT disconnect: {e}")
            finally:
                self.client = None
                self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ==================== MQTT Callbacks ====================

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        """Callback when connected to MQTT broker."""
        if not reason_code.is_failure:
            self._connected = True
            self._connection_error = None

            # Subscribing here also restores the subscription after a reconnect
            client.subscribe(self.config.topic_data, qos=self.config.qos)
            log.info(f"MQTT connected, subscribed to {self.config.topic_data}")

            self._resolve_connection(None)
        else:
            self._connected = False
            self._connection_error = f"Connection refused: {reason_code}"
            log.error(f"MQTT connection failed: {self._connection_error}")
            self._resolve_connection(RuntimeError(self._connection_error))

    def _resolve_connection(self, error: Optional[Exception]) -> None:
        future = self._connection_future
        if future is None or self._loop is None:
            return

        def resolve() -> None:
            if future.done():
                return
            if error is None:
                future.set_result(True)
            else:
                future.set_exception(error)

        self._loop.call_soon_threadsafe(resolve)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        """Callback when disconnected from MQTT broker."""
        self._connected = False
        log.warning(f"Disconnected from MQTT broker (reason: {reason_code})")

    def _on_message(self, client, userdata, msg) -> None:
        """Callback when a message is received."""
        self._messages_received += 1
        try:
            payload = json.loads(msg.payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self._messages_dropped += 1
            log.warning(f"Dropped malformed message on {msg.topic}: {e}")
            return

        log.debug(f"MQTT message received on {msg.topic}: {payload}")
        try:
            self._handler(payload)
        except Exception as e:
            # Never let an exception reach paho's network thread
            self._messages_dropped += 1
            log.error(f"Error processing MQTT message: {e}")

    # ==================== Publishing ====================

    def publish_json(self, topic: str, payload: Dict[str, Any]) -> None:
        """
        Publish a JSON command.

        Raises:
            TransportNotConnected: Client is offline.
            TransientIOError: paho refused the publish.
        """
        if not self.client or not self._connected:
            raise TransportNotConnected()

        info = self.client.publish(topic, json.dumps(payload), qos=self.config.qos, retain=False)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransientIOError(f"publish to {topic}", RuntimeError(mqtt.error_string(info.rc)))
        log.info(f"Published to {topic}: {payload}")

    def publish_power_control(self, status: str) -> None:
        if status not in ("on", "off"):
            raise ValidationException(errors={"status": ["must be 'on' or 'off'"]})
        self.publish_json(self.config.topic_control, {"status": status})

    def publish_reboot(self) -> None:
        self.publish_json(self.config.topic_reboot, {"command": "reboot"})

    def get_stats(self) -> Dict[str, Any]:
        return {
            "connected": self._connected,
            "broker": f"{self.config.broker_host}:{self.config.broker_port}",
            "topic": self.config.topic_data,
            "messages_received": self._messages_received,
            "messages_dropped": self._messages_dropped,
            "last_error": self._connection_error,
        }
