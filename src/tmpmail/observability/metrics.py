"""Prometheus metrics for tmpmail.

Defines operational metrics for the mail listener and the message store.
"""

from prometheus_client import Counter, Gauge

# Connection metrics
smtp_connections_total = Counter(
    "tmpmail_smtp_connections_total",
    "Total SMTP connections accepted"
)

smtp_active_connections = Gauge(
    "tmpmail_smtp_active_connections",
    "Number of SMTP connections currently open"
)

smtp_transport_errors_total = Counter(
    "tmpmail_smtp_transport_errors_total",
    "Connections ended by a read/write failure",
    ["error_type"]
)

# Protocol metrics
smtp_commands_total = Counter(
    "tmpmail_smtp_commands_total",
    "SMTP commands processed",
    ["command", "code"]  # command: HELO|EHLO|MAIL|...|UNKNOWN
)

smtp_messages_accepted_total = Counter(
    "tmpmail_smtp_messages_accepted_total",
    "Mail transactions completed and stored"
)

smtp_messages_rejected_total = Counter(
    "tmpmail_smtp_messages_rejected_total",
    "Mail transactions rejected at end of data",
    ["reason"]  # reason: too_big
)

# Store metrics
store_puts_total = Counter(
    "tmpmail_store_puts_total",
    "Messages written to the store (one per recipient)"
)

store_expired_total = Counter(
    "tmpmail_store_expired_total",
    "Store entries removed after their time-to-live elapsed"
)

store_entries = Gauge(
    "tmpmail_store_entries",
    "Entries held in the store, including not yet purged expired ones"
)
