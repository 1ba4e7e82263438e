"""Gate observability: structured event dispatch.

Usage::

    from navgate.monitoring.event_bus import EventBus, EventType, LoggingSink

    bus = EventBus()
    bus.add_sink(LoggingSink())
    bus.emit(EventType.TAB_BLOCKED, tab_id=7, domain="copart.com", data={"reason": "..."})
"""
