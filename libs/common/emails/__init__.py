"""
EduMarket Email Package.

Modules:
- core: Base send_email function (direct SMTP fallback)
- client: EmailClient for sending emails via the Communications Service API
- payouts: Payout invoice email
"""
