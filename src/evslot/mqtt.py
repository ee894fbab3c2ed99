import json
import logging

import paho.mqtt.client as mqtt

from . import config

logger = logging.getLogger("evslot_logger")


class MQTTClient:
    '''
    Publishes slot and booking events so station hardware and dashboards can
    follow availability. The server does not subscribe to anything.
    '''

    def __init__(self, broker: str = config.MQTT_BROKER, port: int = config.MQTT_PORT, topic: str = config.MQTT_TOPIC):
        self.broker = broker
        self.port = port
        self.topic = topic
        self.client = mqtt.Client(callback_api_version=mqtt.CallbackAPIVersion.VERSION2)
        self.client.on_connect = self.on_connect

    def on_connect(self, client, userdata, flags, reason_code, properties):
        logger.info(f"on_connect(): {reason_code}")

    def send_slot_update(self, station_id: int, slot_id: int, slot_number: int, status: str, available_slots: int):
        payload = {
            "event": "slot_status",
            "station_id": station_id,
            "slot_id": slot_id,
            "slot_number": slot_number,
            "status": status,
            "available_slots": available_slots,
        }
        self._publish(f"{self.topic}/{station_id}", payload)

    def send_booking_event(self, event: str, booking):
        payload = {
            "event": f"booking_{event}",
            "booking_id": booking.id,
            "station_id": booking.station_id,
            "slot_id": booking.slot_id,
            "start_time": booking.start_time.isoformat(),
            "duration": booking.duration,
            "status": booking.status,
        }
        self._publish(f"{self.topic}/{booking.station_id}/bookings", payload)

    def _publish(self, topic: str, payload: dict):
        info = self.client.publish(topic, json.dumps(payload))
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(f"Publishing to {topic} failed: {mqtt.error_string(info.rc)}")

    def start(self):
        logger.info("Connecting to {}:{}".format(self.broker, self.port))
        self.client.connect(self.broker, self.port)
        self.client.loop_start()

    def stop(self):
        self.client.loop_stop()
        self.client.disconnect()
