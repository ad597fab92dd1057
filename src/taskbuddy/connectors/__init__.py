"""
Connectors: concrete notification delivery and the console front-end.

Components:
- log_notifier.py: notifier that logs and keeps pending notifications in memory
- matrix_client.py / matrix_notifier.py: notification delivery into Matrix rooms
- console_connector.py: interactive REPL over the command registry
"""
