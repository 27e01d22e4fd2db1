from __future__ import annotations

import json
import logging
import ssl
from typing import Any

import paho.mqtt.client as mqtt

from smartmon_tap.config import MqttConfig

AVAILABILITY_QOS = 1
HEALTH_SUFFIX = "_device_smart_healthy"


def disk_topic_name(disk: str) -> str:
    """Turn a device path such as ``/dev/nvme0`` into a topic level (``nvme0``)."""
    name = disk.removeprefix("/dev/")
    return name.strip("/").replace("/", "_").replace("+", "_").replace("#", "_")


class MqttPublisher:
    """Publishes smartmon payloads to ``<base_topic>/...``.

    Topics:
        ``status``: retained ``online``/``offline``, also the last will.
        ``measurements``: the full JSON payload of one pass.
        ``disks/<name>/healthy``: retained ``1``/``0`` per device with a
        health verdict in the pass.
    """

    def __init__(self, config: MqttConfig) -> None:
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self._connected = False
        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            protocol=mqtt.MQTTv311,
        )
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        if config.username:
            self.client.username_pw_set(config.username, config.password)
        if config.tls_enabled:
            self.client.tls_set(ca_certs=config.ca_cert, cert_reqs=ssl.CERT_REQUIRED)

        self.client.will_set(
            self.topic("status"), payload="offline", qos=AVAILABILITY_QOS, retain=True
        )
        self.client.reconnect_delay_set(min_delay=1, max_delay=120)

    @property
    def connected(self) -> bool:
        return self._connected

    def topic(self, *levels: str) -> str:
        return "/".join((self.config.base_topic, *levels))

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if reason_code.is_failure:
            self._connected = False
            self.logger.error(
                "MQTT broker %s:%s refused connection: %s",
                self.config.host,
                self.config.port,
                reason_code,
            )
            return
        self._connected = True
        self.logger.info("Connected to MQTT broker %s:%s", self.config.host, self.config.port)
        self._set_availability("online")

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        self._connected = False
        if reason_code.is_failure:
            self.logger.warning(
                "Lost connection to MQTT broker (%s), reconnecting in the background.",
                reason_code,
            )
        else:
            self.logger.info("MQTT connection closed.")

    def connect(self) -> None:
        self.logger.info("Connecting to MQTT broker %s:%s", self.config.host, self.config.port)
        self.client.connect(self.config.host, self.config.port, keepalive=self.config.keepalive)
        # paho's network thread owns reconnects from here on
        self.client.loop_start()

    def disconnect(self) -> None:
        if self._connected:
            self._set_availability("offline")
        self.client.loop_stop()
        self.client.disconnect()
        self.logger.info("Disconnected from MQTT broker")

    def _set_availability(self, state: str) -> bool:
        return self._publish(self.topic("status"), state, qos=AVAILABILITY_QOS, retain=True)

    def _publish(self, topic: str, payload: str, qos: int, retain: bool) -> bool:
        result = self.client.publish(topic, payload=payload, qos=qos, retain=retain)
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.logger.error("Publishing to %s failed with rc=%s", topic, result.rc)
            return False
        return True

    def publish(self, payload: str) -> bool:
        if not self._connected:
            self.logger.warning("MQTT broker not connected yet, the message may be queued.")
        self.logger.debug("Publishing measurements to %s", self.topic("measurements"))
        return self._publish(
            self.topic("measurements"), payload, qos=self.config.qos, retain=self.config.retain
        )

    def publish_health(self, measurements: list[dict[str, Any]]) -> bool:
        ok = True
        for measurement in measurements:
            if not measurement["name"].endswith(HEALTH_SUFFIX):
                continue
            disk = measurement["labels"].get("disk")
            if not disk:
                continue
            state = "1" if measurement["value"] else "0"
            topic = self.topic("disks", disk_topic_name(disk), "healthy")
            ok = self._publish(topic, state, qos=self.config.qos, retain=True) and ok
        return ok

    def publish_measurements(self, payload: dict[str, Any]) -> bool:
        sent = self.publish(json.dumps(payload))
        return self.publish_health(payload.get("measurements", [])) and sent
