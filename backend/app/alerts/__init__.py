"""
alerts — Webhook notification of location-check matches.

Sub-modules:
    models      — payload and delivery report structures
    webhook     — HTTP delivery with exponential backoff and a deadline
    dispatcher  — detached, bounded background execution of deliveries
"""
