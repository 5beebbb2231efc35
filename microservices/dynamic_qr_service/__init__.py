"""
Dynamic QR Service

Dynamic content resolution for QR codes providing:
- Content versions with a single active version per code
- A/B tests with session-stable variant assignment
- Geographic, device and time based redirect rules
- Scheduled content windows with weekday recurrence
- Best-effort scan analytics and statistics

Port: 8260
"""

__version__ = "1.0.0"
__service__ = "dynamic_qr_service"
