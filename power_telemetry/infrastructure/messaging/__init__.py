from .mqtt_subscriber import MQTTSubscriber, MessageHandler

__all__ = ["MQTTSubscriber", "MessageHandler"]
