"""Real-time call notification for a queue-ticketing service.

The package runs the viewer side of the system:
- a Display viewer (public board / kiosk) that announces calls audibly and visually
- a Counter viewer that tracks which ticket each counter is serving

Both consume events pushed by the ticketing server (SSE or MQTT) and fall back
to polling its REST API when the push channel is down.

Run `python -m queue_caller.app -h` for the command-line options.
"""
