import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import paho.mqtt.client as mqtt
import pytest

from report_publisher import ReportPublisher


@pytest.fixture
def client():
    mock_client = MagicMock()
    mock_client.is_connected.return_value = True
    mock_client.publish.return_value = SimpleNamespace(rc=mqtt.MQTT_ERR_SUCCESS, wait_for_publish=MagicMock())
    return mock_client


@pytest.fixture
def publisher(client, monkeypatch):
    monkeypatch.setenv("SSIDDETECT_MQTT_SERVER", "broker.local")
    monkeypatch.setenv("SSIDDETECT_MQTT_USERNAME", "robot")
    monkeypatch.setenv("SSIDDETECT_MQTT_PASSWORD", "secret")
    factory = MagicMock(return_value=client)
    pub = ReportPublisher(client_factory=factory)
    pub.factory = factory
    return pub


def test_defaults_follow_report_topic(publisher):
    assert publisher.topic == "wifiAvailable"
    assert publisher.status_topic == "wifiAvailable/status"
    assert publisher.port == 1883


def test_topic_from_environment(monkeypatch):
    monkeypatch.setenv("SSIDDETECT_MQTT_TOPIC", "robot1/wifi")
    pub = ReportPublisher(client_factory=MagicMock())
    assert pub.topic == "robot1/wifi"
    assert pub.status_topic == "robot1/wifi/status"


def test_connect_configures_client(publisher, client):
    assert publisher.connect() is True

    args, kwargs = publisher.factory.call_args
    assert args[0] == mqtt.CallbackAPIVersion.VERSION2
    assert kwargs["transport"] == "tcp"
    client.username_pw_set.assert_called_once_with("robot", "secret")
    will_topic, will_payload = client.will_set.call_args[0]
    assert will_topic == "wifiAvailable/status"
    assert json.loads(will_payload)["status"] == "offline"
    client.connect_async.assert_called_once_with("broker.local", 1883, keepalive=60)
    client.loop_start.assert_called_once()


def test_connect_failure_returns_false(publisher, client):
    client.connect_async.side_effect = ValueError("bad host")
    assert publisher.connect() is False
    assert publisher.client is None


def test_on_connect_publishes_online(publisher, client):
    publisher.on_connect(client, None, None, 0)
    topic, payload = client.publish.call_args[0]
    assert topic == "wifiAvailable/status"
    assert json.loads(payload)["status"] == "online"


def test_publish_report_sends_name_and_status(publisher, client):
    publisher.connect()
    metrics = publisher.publish_report("PhoneArtifact17", "found", "wlan0")

    assert metrics == {"attempted": 1, "succeeded": 1}
    report_call, status_call = client.publish.call_args_list
    assert report_call[0] == ("wifiAvailable", "PhoneArtifact17")
    status = json.loads(status_call[0][1])
    assert status_call[0][0] == "wifiAvailable/status"
    assert status["network"] == "PhoneArtifact17"
    assert status["outcome"] == "found"
    assert status["interface"] == "wlan0"


def test_empty_report_is_published(publisher, client):
    publisher.connect()
    publisher.publish_report("", "scan_error", "wlan0")
    assert client.publish.call_args_list[0][0] == ("wifiAvailable", "")
    assert json.loads(client.publish.call_args_list[1][0][1])["outcome"] == "scan_error"


def test_publish_skipped_while_disconnected(publisher, client):
    publisher.connect()
    client.is_connected.return_value = False
    assert publisher.safe_publish("wifiAvailable", "") == {"attempted": 0, "succeeded": 0}
    client.publish.assert_not_called()


def test_failed_publish_is_counted(publisher, client):
    publisher.connect()
    client.publish.return_value = SimpleNamespace(rc=mqtt.MQTT_ERR_NO_CONN)
    assert publisher.safe_publish("wifiAvailable", "x") == {"attempted": 1, "succeeded": 0}


def test_disconnect_publishes_offline_and_stops(publisher, client):
    publisher.connect()
    publisher.disconnect()
    topic, payload = client.publish.call_args[0]
    assert topic == "wifiAvailable/status"
    assert json.loads(payload)["status"] == "offline"
    client.disconnect.assert_called_once()
    client.loop_stop.assert_called_once()
    assert publisher.client is None


def test_sanitize_client_id():
    assert ReportPublisher.sanitize_client_id("ssid_detector_robot.local") == "ssid_detector_robot_loc"
