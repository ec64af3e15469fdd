"""
Realtime app for pushing dispatch events to users and operators.

This app provides:
- NotificationRecord: history of every push attempt (purged after a week)
- OperatorAlert: escalations that need a human
- notifications.py: gateway, operator alert channel and message builders

Usage:
    from realtime.notifications import NotificationGateway, OperatorAlertChannel
    from realtime.notifications import driver_order_notice, customer_order_notice
"""
