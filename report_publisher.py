#!/usr/bin/env python3
"""
MQTT publishing of detection reports.

Each cycle the detected network name (empty when nothing was found) is
published on the report topic. A JSON status message on the status topic
carries the cycle outcome, so consumers can tell a failed scan from a
network that is simply out of range. An "offline" Last Will is registered
on the status topic.
"""

import json
import logging
import socket
import ssl
from datetime import datetime

import paho.mqtt.client as mqtt

from env_config import get_env, get_env_bool, get_env_int

DEFAULT_TOPIC = 'wifiAvailable'


class ReportPublisher:
    """Publishes reports to a single MQTT broker"""

    def __init__(self, topic=None, client_factory=None):
        self.logger = logging.getLogger('ReportPublisher')

        self.server = get_env('MQTT_SERVER', 'localhost')
        self.port = get_env_int('MQTT_PORT', 1883)
        self.transport = get_env('MQTT_TRANSPORT', 'tcp')
        self.keepalive = get_env_int('MQTT_KEEPALIVE', 120 if self.transport == 'websockets' else 60)
        self.qos = get_env_int('MQTT_QOS', 0)
        self.retain = get_env_bool('MQTT_RETAIN', False)
        self.topic = topic or get_env('MQTT_TOPIC', DEFAULT_TOPIC)
        self.status_topic = get_env('MQTT_STATUS_TOPIC', '') or f"{self.topic}/status"
        self.client_id = get_env('MQTT_CLIENT_ID', '') or self.sanitize_client_id(f"ssid_detector_{socket.gethostname()}")
        self.origin = socket.gethostname()

        self.client_factory = client_factory or mqtt.Client
        self.client = None
        self._warned_offline = False

    @staticmethod
    def sanitize_client_id(name):
        """Keep only characters brokers accept in a client ID"""
        return ''.join(c if c.isalnum() or c in '_-' else '_' for c in name)[:23]

    def status_payload(self, status, **extra):
        payload = {
            "status": status,
            "timestamp": datetime.now().isoformat(),
            "origin": self.origin,
        }
        payload.update(extra)
        return json.dumps(payload)

    def on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            self._warned_offline = False
            self.logger.info(f"Connected to MQTT broker {self.server}:{self.port}")
            client.publish(self.status_topic, self.status_payload("online"), qos=self.qos, retain=True)
        else:
            self.logger.error(f"MQTT connection failed with code {reason_code}")

    def on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        if reason_code == 0:
            self.logger.info("Disconnected from MQTT broker")
        else:
            self.logger.warning(f"Disconnected from MQTT broker (code: {reason_code}). Connection will be retried.")

    def connect(self) -> bool:
        """Start the MQTT client. Connection is completed in paho's network thread."""
        try:
            self.logger.info(f"Connecting to MQTT at {self.server}:{self.port} with client ID: {self.client_id}")

            client = self.client_factory(
                mqtt.CallbackAPIVersion.VERSION2,
                client_id=self.client_id,
                clean_session=True,
                transport=self.transport
            )
            client.enable_logger(self.logger)
            client.reconnect_delay_set(min_delay=1, max_delay=120)

            username = get_env('MQTT_USERNAME', '')
            if username:
                client.username_pw_set(username, get_env('MQTT_PASSWORD', ''))

            client.will_set(self.status_topic, self.status_payload("offline"), qos=self.qos, retain=True)

            client.on_connect = self.on_connect
            client.on_disconnect = self.on_disconnect

            if get_env_bool('MQTT_USE_TLS', False):
                if get_env_bool('MQTT_TLS_VERIFY', True):
                    client.tls_set(cert_reqs=ssl.CERT_REQUIRED)
                    client.tls_insecure_set(False)
                else:
                    client.tls_set(cert_reqs=ssl.CERT_NONE)
                    client.tls_insecure_set(True)
                    self.logger.warning("TLS certificate verification disabled (insecure)")

            if self.transport == 'websockets':
                client.ws_set_options(path="/", headers=None)

            client.connect_async(self.server, self.port, keepalive=self.keepalive)
            client.loop_start()
            self.client = client
            return True

        except Exception as e:
            self.logger.error(f"MQTT connection error: {e}")
            return False

    def safe_publish(self, topic, payload, retain=False):
        """Publish one message and return publish metrics"""
        metrics = {"attempted": 0, "succeeded": 0}

        if self.client is None or not self.client.is_connected():
            if not self._warned_offline:
                self.logger.warning(f"Not connected - skipping publish to {topic}")
                self._warned_offline = True
            return metrics

        metrics["attempted"] += 1
        try:
            result = self.client.publish(topic, payload, qos=self.qos, retain=retain)
            if result.rc == mqtt.MQTT_ERR_SUCCESS:
                metrics["succeeded"] += 1
            else:
                self.logger.warning(f"Publish to {topic} failed: {mqtt.error_string(result.rc)}")
        except Exception as e:
            self.logger.error(f"Error publishing to {topic}: {e}")
        return metrics

    def publish_report(self, report, outcome, interface):
        """Publish the report string and the matching status message"""
        metrics = self.safe_publish(self.topic, report, retain=self.retain)
        self.safe_publish(
            self.status_topic,
            self.status_payload("online", network=report, outcome=outcome, interface=interface),
        )
        return metrics

    def disconnect(self):
        if self.client is None:
            return
        try:
            if self.client.is_connected():
                info = self.client.publish(self.status_topic, self.status_payload("offline"), qos=self.qos, retain=True)
                info.wait_for_publish(timeout=2.0)
            self.client.disconnect()
            self.client.loop_stop()
        except Exception as e:
            self.logger.warning(f"Error disconnecting from MQTT broker: {e}")
        finally:
            self.client = None
