# Services package init
"""
ScanAlert Backend — Services Layer
====================================

Service Inventory:
    - NotificationSender (abstract): Interface for alert delivery
    - TwilioSmsSender: Concrete SMS delivery through Twilio
    - ScanService: validate → look up → record → notify; scan history
"""
